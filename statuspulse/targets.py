"""Target normalization and checker routing.

Raw target entries come from a user-edited JSON file, so every helper here
is total: malformed input degrades to a disabled or unaddressable
descriptor instead of raising.
"""

import math
from enum import Enum
from typing import Any

from .models import TargetDescriptor

# Fallback timeout when a target has no positive timeoutMs.
DEFAULT_TIMEOUT_MS = 3500

# Host used when an entry only carries a port.
LOOPBACK_HOST = "127.0.0.1"

# Wildcard bind addresses act as "placeholder / offline display" markers.
WILDCARD_HOSTS = frozenset({"0.0.0.0", "::"})

# Recognized spellings of an explicit "disabled" flag. Everything else,
# including a missing value, means enabled.
_DISABLED_SPELLINGS: tuple[tuple[type, Any], ...] = (
    (bool, False),
    (int, 0),
    (float, 0.0),
    (str, "false"),
)

# Explicit protocol selectors that route a host+port target to the GSP checker.
GSP_PROTOCOLS = frozenset({"gsp", "minecraft"})


class CheckerKind(Enum):
    """Which checker applies to a target."""

    HTTP = "http"
    TCP = "tcp"
    GSP = "gsp"
    NONE = "none"


def is_enabled(value: Any) -> bool:
    """Interpret an ``enabled`` flag using the table of disabled spellings."""
    if value is None:
        return True
    if isinstance(value, str):
        value = value.strip().lower()
    for kind, disabled in _DISABLED_SPELLINGS:
        if type(value) is kind and value == disabled:
            return False
    return True


def _usable_url(value: Any) -> str | None:
    if isinstance(value, str) and value.strip().lower().startswith(("http://", "https://")):
        return value.strip()
    return None


def _parse_port(value: Any) -> int | None:
    """Parse a port number, returning None unless it is within 1..65535."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        value = int(value)
    elif isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return None
    if not isinstance(value, int):
        return None
    return value if 1 <= value <= 65535 else None


def _parse_timeout_ms(value: Any, default_timeout_ms: int) -> int:
    if isinstance(value, bool) or value is None:
        return default_timeout_ms
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        return default_timeout_ms
    if not math.isfinite(timeout) or timeout <= 0:
        return default_timeout_ms
    return max(1, int(timeout))


def _parse_id(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _host_value(raw: dict) -> str | None:
    """First usable of ``ip`` and ``host``."""
    for key in ("ip", "host"):
        host = raw.get(key)
        if isinstance(host, str) and host.strip():
            return host.strip()
    return None


def normalize_target(raw: Any, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> TargetDescriptor:
    """Build a TargetDescriptor from one raw target-list entry.

    Args:
        raw: Entry as read from the target list (expected to be a dict).
        default_timeout_ms: Timeout used when the entry has no positive ``timeoutMs``.

    Returns:
        A descriptor. Non-dict entries yield an unaddressable descriptor with no id.
    """
    if not isinstance(raw, dict):
        return TargetDescriptor(id=None, timeout_ms=default_timeout_ms)

    declared_host = _host_value(raw)
    port = _parse_port(raw.get("port"))
    host = declared_host
    if host is None and raw.get("port"):
        host = LOOPBACK_HOST

    protocol = raw.get("protocol")

    return TargetDescriptor(
        id=_parse_id(raw.get("id")),
        enabled=is_enabled(raw.get("enabled")),
        url=_usable_url(raw.get("url")),
        host=host,
        port=port,
        timeout_ms=_parse_timeout_ms(raw.get("timeoutMs"), default_timeout_ms),
        protocol=protocol.strip().lower() if isinstance(protocol, str) and protocol.strip() else None,
        placeholder=declared_host in WILDCARD_HOSTS,
    )


def choose_checker(target: TargetDescriptor) -> CheckerKind:
    """Decide which checker applies to a target.

    A usable URL always wins. A usable host and port route to the TCP
    checker, or to the GSP checker when the target explicitly asks for it.
    """
    if target.url:
        return CheckerKind.HTTP
    if target.has_host_port:
        if target.protocol in GSP_PROTOCOLS:
            return CheckerKind.GSP
        return CheckerKind.TCP
    return CheckerKind.NONE


def should_skip(target: TargetDescriptor) -> bool:
    """True when the target must not be dialed (placeholder or no usable address)."""
    return target.placeholder or choose_checker(target) is CheckerKind.NONE
