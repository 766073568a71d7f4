"""Reserved topic names used by the runtime core."""

SYSTEM_ERROR = "system:error"

STATE_CHANGE = "state:change"
STATE_RESET = "state:reset"
STATE_PREFIX = "state"

SERVICES_INITIALIZED = "services:initialized"
SERVICES_SHUTDOWN = "services:shutdown"
SERVICE_HEALTH_CHECK_FAILED = "service:health-check-failed"


def state_topic(path: str) -> str:
    """Return the bus topic for changes at a dotted state path.

    >>> state_topic("playlist.entries")
    'state:playlist:entries'
    """
    return f"{STATE_PREFIX}:{path.replace('.', ':')}"


def service_topic(name: str, phase: str) -> str:
    """Return the lifecycle topic for a service, e.g. ``service:tags:initialized``."""
    return f"service:{name}:{phase}"
