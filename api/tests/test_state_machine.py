from stellr.services.state_machine import REQUEST_STATUSES, can_delete, transition_request


def test_pending_responses():
    assert transition_request("pending", "confirm") == "confirmed"
    assert transition_request("pending", "reject") == "rejected"
    assert transition_request("pending", "expire") == "expired"


def test_repeated_responses_are_noops():
    assert transition_request("rejected", "reject") == "rejected"
    assert transition_request("confirmed", "confirm") == "confirmed"
    assert transition_request("expired", "expire") == "expired"


def test_cannot_flip_a_decided_request():
    assert transition_request("rejected", "confirm") == "rejected"
    assert transition_request("confirmed", "reject") == "confirmed"
    assert transition_request("expired", "confirm") == "expired"
    assert transition_request("confirmed", "expire") == "confirmed"


def test_fulfilled_only_from_confirmed_and_terminal():
    assert transition_request("confirmed", "fulfill") == "fulfilled"
    assert transition_request("pending", "fulfill") == "pending"
    assert transition_request("rejected", "fulfill") == "rejected"
    for action in ("confirm", "reject", "expire", "fulfill", "unknown"):
        assert transition_request("fulfilled", action) == "fulfilled"


def test_deletable_statuses():
    assert can_delete("pending") and can_delete("rejected")
    assert not can_delete("confirmed") and not can_delete("fulfilled")


def test_transitions_stay_within_known_statuses():
    for status in REQUEST_STATUSES:
        for action in ("confirm", "reject", "expire", "fulfill"):
            assert transition_request(status, action) in REQUEST_STATUSES
