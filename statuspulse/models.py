"""Data models for target descriptors and check results."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TargetDescriptor:
    """Normalized view of one service to check.

    Attributes:
        id: Target identifier, or None if the raw entry had no usable id.
        enabled: Whether the target should be checked at all.
        url: HTTP(S) URL, or None if the entry has no usable URL.
        host: Host to dial (defaults to loopback when only a port is given).
        port: Port in 1..65535, or None.
        timeout_ms: Per-check timeout in milliseconds (always positive).
        protocol: Optional explicit protocol selector (e.g. "gsp").
        placeholder: True when the host is a wildcard address that must never be dialed.
    """

    id: str | None
    enabled: bool = True
    url: str | None = None
    host: str | None = None
    port: int | None = None
    timeout_ms: int = 3500
    protocol: str | None = None
    placeholder: bool = False

    @property
    def has_host_port(self) -> bool:
        return bool(self.host) and self.port is not None


@dataclass(frozen=True)
class Players:
    """Occupancy reported by a game server."""

    online: int
    max: int

    def to_dict(self) -> dict[str, int]:
        return {"online": self.online, "max": self.max}


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single checker invocation.

    Attributes:
        online: Whether the target answered as expected.
        rtt_ms: Measured wall-clock duration of the check in milliseconds.
        players: Occupancy, only for protocols that report it.
        version: Version label, only for protocols that report it.
        disabled: Not attempted because the target is disabled.
        skipped: Not attempted because the target has no usable address.
        internal_error: The check raised unexpectedly and was isolated by the pool.
        error_message: Diagnostic text for logs. Never persisted.
    """

    online: bool
    rtt_ms: int | None = None
    players: Players | None = None
    version: str | None = None
    disabled: bool = False
    skipped: bool = False
    internal_error: bool = False
    error_message: str | None = None

    @property
    def attempted(self) -> bool:
        """True when a checker actually ran for this target."""
        return not (self.disabled or self.skipped)
