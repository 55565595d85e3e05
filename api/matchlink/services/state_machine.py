from .domain import ConnectionStatus
from .errors import InvalidTransition

ACTIVE_STATUSES = frozenset({ConnectionStatus.PENDING, ConnectionStatus.ACCEPTED, ConnectionStatus.REJECTED})
TERMINAL_STATUSES = frozenset({ConnectionStatus.WITHDRAWN, ConnectionStatus.CANCELLED})

LEGAL_PREDECESSORS: dict[str, frozenset[ConnectionStatus]] = {
    "accept": frozenset({ConnectionStatus.PENDING, ConnectionStatus.REJECTED}),
    "reject": frozenset({ConnectionStatus.PENDING, ConnectionStatus.ACCEPTED}),
    "withdraw": frozenset({ConnectionStatus.PENDING}),
    "cancel": ACTIVE_STATUSES,
}

RESULTING_STATUS: dict[str, ConnectionStatus] = {
    "accept": ConnectionStatus.ACCEPTED,
    "reject": ConnectionStatus.REJECTED,
    "withdraw": ConnectionStatus.WITHDRAWN,
    "cancel": ConnectionStatus.CANCELLED,
}


def is_active(status: ConnectionStatus | str) -> bool:
    return ConnectionStatus(status) in ACTIVE_STATUSES


def is_repeat(current: ConnectionStatus | str, action: str) -> bool:
    """withdraw/cancel replayed against their own terminal state."""
    return action in ("withdraw", "cancel") and ConnectionStatus(current) == RESULTING_STATUS[action]


def transition_status(current: ConnectionStatus | str, action: str) -> ConnectionStatus:
    if action not in LEGAL_PREDECESSORS:
        raise ValueError(f"unknown action: {action}")
    current = ConnectionStatus(current)
    if is_repeat(current, action):
        return current
    if current not in LEGAL_PREDECESSORS[action]:
        raise InvalidTransition(current.value, action)
    return RESULTING_STATUS[action]


def canonical_pair(member_a: str, member_b: str) -> tuple[str, str]:
    return tuple(sorted((member_a, member_b)))


def active_pair_key(member_a: str, member_b: str) -> str:
    low, high = canonical_pair(member_a, member_b)
    # length-prefixed so ids containing ":" cannot collide
    return f"{len(low)}:{low}:{high}"
