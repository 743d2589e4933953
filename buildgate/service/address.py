from __future__ import annotations

_GATEWAY_HOST = "host.docker.internal"


def resolve_host(strategy: str, bind: str) -> str:
    """Return the hostname a build should dial to reach a dependency bound on `bind`."""
    if not isinstance(strategy, str) or len(strategy.strip()) < 1:
        raise ValueError("Address strategy must be a non-empty string")

    strategy = strategy.strip()
    match strategy:
        case "loopback":
            return "127.0.0.1"
        case "bind":
            if bind in ("0.0.0.0", "::", ""):
                return "127.0.0.1"
            return bind
        case "host-gateway":
            return _GATEWAY_HOST
        case _:
            if any(ch.isspace() for ch in strategy) or "/" in strategy:
                raise ValueError(f"Invalid address strategy or hostname: {strategy!r}")
            if ":" not in strategy and not _valid_labels(strategy):
                raise ValueError(f"Hostname has an empty or oversized label: {strategy!r}")
            return strategy


def _valid_labels(hostname: str) -> bool:
    # A single trailing dot marks a fully qualified name.
    labels = hostname[:-1].split(".") if hostname.endswith(".") else hostname.split(".")
    return all(0 < len(label) <= 63 for label in labels)
