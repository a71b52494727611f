"""Status snapshot: merging check results and persisting them atomically.

The snapshot is a JSON object mapping target id to its latest status
record. It is replaced wholesale on every tick; ids that left the target
list disappear from it.
"""

import json
import logging
import os
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .models import CheckResult, Players, TargetDescriptor

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """Raised when the snapshot file cannot be read, parsed or written."""

    pass


@dataclass(frozen=True)
class StatusRecord:
    """Persisted last-observation state for one target.

    ``players`` and ``version`` are omitted from the serialized form when
    the most recent check did not supply them.
    """

    id: str
    online: bool
    last_check_at: str
    players: Players | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"online": self.online, "lastCheckAt": self.last_check_at}
        if self.players is not None:
            data["players"] = self.players.to_dict()
        if self.version is not None:
            data["version"] = self.version
        return data


def format_timestamp(moment: datetime) -> str:
    """Format a timestamp as ISO-8601 UTC with millisecond precision, e.g. ``2024-01-01T12:00:00.000Z``."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def merge_record(
    target: TargetDescriptor,
    result: CheckResult,
    checked_at: str,
    previous: dict[str, Any] | None = None,
) -> StatusRecord | None:
    """Build the new status record for one target.

    Targets without a valid id produce no record. Disabled and unaddressable
    targets are recorded offline and never carry players/version. Otherwise
    players/version come from this tick's result only.

    ``previous`` is accepted so future fields can be carried forward; none
    of the current fields are.
    """
    if target.id is None:
        return None

    if not result.attempted:
        return StatusRecord(id=target.id, online=False, last_check_at=checked_at)

    return StatusRecord(
        id=target.id,
        online=bool(result.online),
        last_check_at=checked_at,
        players=result.players,
        version=result.version,
    )


def merge_status(
    previous: dict[str, dict[str, Any]],
    targets: Sequence[TargetDescriptor],
    results: Sequence[CheckResult | None],
    checked_at: str,
) -> dict[str, dict[str, Any]]:
    """Fold this tick's results into a new snapshot.

    Args:
        previous: Prior snapshot (id -> record dict).
        targets: This tick's targets, in order.
        results: ``results[i]`` is the check result for ``targets[i]``, or None if not checked.
        checked_at: Timestamp stamped on every record.

    Returns:
        New snapshot containing exactly one record per valid target id, in target order.
    """
    if len(targets) != len(results):
        raise ValueError(f"Got {len(results)} results for {len(targets)} targets")

    snapshot: dict[str, dict[str, Any]] = {}
    for target, result in zip(targets, results):
        if result is None or target.id is None:
            continue
        record = merge_record(target, result, checked_at, previous.get(target.id))
        if record is None:
            continue
        if record.id in snapshot:
            logger.warning("Duplicate target id '%s': keeping the later entry", record.id)
        snapshot[record.id] = record.to_dict()
    return snapshot


def read_snapshot(path: str | Path) -> dict[str, dict[str, Any]]:
    """Read the prior snapshot.

    A missing file yields an empty snapshot. A legacy list of records is
    indexed by id.

    Raises:
        SnapshotError: If the file exists but cannot be read or parsed.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (FileNotFoundError, NotADirectoryError):
        return {}
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Status snapshot {path} is not valid JSON: {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(f"Failed to read status snapshot {path}: {e}")

    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return {item["id"]: item for item in data if isinstance(item, dict) and isinstance(item.get("id"), str)}
    raise SnapshotError(f"Status snapshot {path} must be a JSON object, got {type(data).__name__}")


def serialize_snapshot(snapshot: dict[str, dict[str, Any]]) -> str:
    return json.dumps(snapshot, indent=2, ensure_ascii=False) + "\n"


def write_snapshot(path: str | Path, snapshot: dict[str, dict[str, Any]]) -> None:
    """Write the snapshot so readers never see a partial file.

    The content goes to a uniquely named sibling file which is then renamed
    over the destination.

    Raises:
        SnapshotError: If the snapshot cannot be written.
    """
    path = Path(path)
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{time.time_ns()}.tmp")
    content = serialize_snapshot(snapshot)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove temporary file %s", tmp_path)
        raise SnapshotError(f"Failed to write status snapshot {path}: {e}")

    logger.debug("Wrote %d status records to %s", len(snapshot), path)
