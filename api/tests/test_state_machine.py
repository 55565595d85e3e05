import pytest

from matchlink.services.domain import ConnectionStatus
from matchlink.services.errors import InvalidTransition
from matchlink.services.state_machine import active_pair_key, is_active, transition_status


def test_forward_transitions_from_pending():
    assert transition_status("pending", "accept") == ConnectionStatus.ACCEPTED
    assert transition_status("pending", "reject") == ConnectionStatus.REJECTED
    assert transition_status("pending", "withdraw") == ConnectionStatus.WITHDRAWN
    assert transition_status("pending", "cancel") == ConnectionStatus.CANCELLED


def test_reversal_between_accepted_and_rejected():
    assert transition_status("accepted", "reject") == ConnectionStatus.REJECTED
    assert transition_status("rejected", "accept") == ConnectionStatus.ACCEPTED


def test_withdraw_and_cancel_replay_is_a_noop():
    assert transition_status("withdrawn", "withdraw") == ConnectionStatus.WITHDRAWN
    assert transition_status("cancelled", "cancel") == ConnectionStatus.CANCELLED


@pytest.mark.parametrize(
    "current,action",
    [
        ("accepted", "accept"),
        ("rejected", "reject"),
        ("accepted", "withdraw"),
        ("rejected", "withdraw"),
        ("withdrawn", "accept"),
        ("withdrawn", "cancel"),
        ("cancelled", "reject"),
        ("cancelled", "withdraw"),
    ],
)
def test_illegal_transitions_raise(current, action):
    with pytest.raises(InvalidTransition) as exc:
        transition_status(current, action)
    assert exc.value.status_code == 409
    assert exc.value.current == current


def test_unknown_action_is_a_programming_error():
    with pytest.raises(ValueError):
        transition_status("pending", "expire")


def test_active_statuses():
    assert is_active("pending") and is_active("accepted") and is_active("rejected")
    assert not is_active("withdrawn")
    assert not is_active("cancelled")


def test_active_pair_key_is_order_independent_and_unambiguous():
    assert active_pair_key("a", "b") == active_pair_key("b", "a")
    assert active_pair_key("a:b", "c") != active_pair_key("a", "b:c")
