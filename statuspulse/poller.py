"""Tick orchestration: targets -> checks -> merge -> persist."""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp

from .checkers import check_gsp, check_http, check_tcp
from .config import Config, load_targets
from .models import CheckResult, TargetDescriptor
from .pool import map_bounded
from .snapshot import format_timestamp, merge_status, read_snapshot, write_snapshot
from .targets import CheckerKind, choose_checker, normalize_target, should_skip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickSummary:
    """Outcome of one tick.

    Attributes:
        checked_at: Timestamp stamped on every record of this tick.
        total: Number of entries in the target list.
        disabled: Ids of targets that were disabled.
        online: Number of targets found online.
        written: Number of records in the new snapshot.
        snapshot: The new snapshot (id -> record dict).
    """

    checked_at: str
    total: int
    disabled: list[str] = field(default_factory=list)
    online: int = 0
    written: int = 0
    snapshot: dict[str, dict[str, Any]] = field(default_factory=dict)


async def check_target(
    target: TargetDescriptor,
    session: aiohttp.ClientSession | None = None,
) -> CheckResult | None:
    """Run the appropriate checker for one target.

    Returns None for targets without a valid id: they are never dialed and
    never recorded.
    """
    if target.id is None:
        return None
    if not target.enabled:
        return CheckResult(online=False, disabled=True)
    if should_skip(target):
        return CheckResult(online=False, skipped=True)

    kind = choose_checker(target)
    if kind is CheckerKind.HTTP:
        return await check_http(target.url, target.timeout_ms, session=session)
    if kind is CheckerKind.GSP:
        return await check_gsp(target.host, target.port, target.timeout_ms)
    if kind is CheckerKind.TCP:
        return await check_tcp(target.host, target.port, target.timeout_ms)
    return CheckResult(online=False, skipped=True)


async def check_targets(targets: Sequence[TargetDescriptor], concurrency: int) -> list[CheckResult | None]:
    """Check all targets with bounded concurrency, sharing one HTTP session."""
    async with aiohttp.ClientSession() as session:
        return await map_bounded(targets, concurrency, lambda target: check_target(target, session))


def _log_results(targets: Sequence[TargetDescriptor], results: Sequence[CheckResult | None]) -> None:
    for target, result in zip(targets, results):
        if result is None or not result.attempted:
            continue
        status = "UP" if result.online else "DOWN"
        if result.error_message:
            logger.debug("%s: %s (%sms) %s", target.id, status, result.rtt_ms, result.error_message)
        else:
            logger.debug("%s: %s (%sms)", target.id, status, result.rtt_ms)


async def run_tick(config: Config, now: datetime | None = None, write: bool = True) -> TickSummary:
    """Run one full tick.

    Args:
        config: Paths and tunables.
        now: Timestamp to stamp on records (defaults to the current time).
        write: Persist the new snapshot. False gives a dry run.

    Returns:
        TickSummary describing the new snapshot.

    Raises:
        ConfigError: If the target list is missing or malformed. Nothing is written.
        SnapshotError: If the prior snapshot is corrupt or the new one cannot be written.
    """
    raw_targets = load_targets(config.targets_path)
    previous = read_snapshot(config.status_path)

    targets = [normalize_target(raw, config.poller.default_timeout_ms) for raw in raw_targets]
    checked_at = format_timestamp(now or datetime.now(UTC))

    results = await check_targets(targets, config.poller.concurrency)
    _log_results(targets, results)

    snapshot = merge_status(previous, targets, results, checked_at)
    if write:
        write_snapshot(config.status_path, snapshot)

    disabled = [t.id for t in targets if t.id is not None and not t.enabled]
    online = sum(1 for record in snapshot.values() if record["online"])

    logger.info("Disabled in config: %s", ", ".join(disabled) if disabled else "none")
    logger.info(
        "Checked %d/%d enabled targets @ %s (%d online, wrote %d)",
        len(targets) - sum(1 for t in targets if not t.enabled),
        len(targets),
        checked_at,
        online,
        len(snapshot),
    )

    return TickSummary(
        checked_at=checked_at,
        total=len(targets),
        disabled=disabled,
        online=online,
        written=len(snapshot),
        snapshot=snapshot,
    )


class Poller:
    """Runs ticks once or on a fixed interval.

    Example:
        poller = Poller(config)
        await poller.run_once()
        # or, until poller.stop() is called:
        await poller.run_forever()
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._stop_event = asyncio.Event()
        self._tick_count = 0

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def stop(self) -> None:
        """Ask ``run_forever`` to return after the current tick."""
        self._stop_event.set()

    async def run_once(self) -> TickSummary:
        summary = await run_tick(self._config)
        self._tick_count += 1
        return summary

    async def run_forever(self) -> None:
        """Run a tick now, then one every ``poller.interval`` seconds until stopped.

        A fatal tick error ends the loop and propagates.
        """
        interval = self._config.poller.interval
        logger.info("Poller started (interval: %ds)", interval)

        while not self._stop_event.is_set():
            started = time.monotonic()
            await self.run_once()

            delay = max(0.0, interval - (time.monotonic() - started))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except TimeoutError:
                pass

        logger.info("Poller stopped after %d ticks", self._tick_count)
