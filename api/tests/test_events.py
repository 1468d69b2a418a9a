import json

from stellr.services.events import award_progress_points, enqueue_notification, log_deletion_audit


class FakeDB:
    def __init__(self):
        self.calls = []

    def execute(self, stmt, params):
        self.calls.append((str(stmt), params))


def test_enqueue_notification_inserts_outbox_row():
    db = FakeDB()
    enqueue_notification(
        db,
        "00000000-0000-0000-0000-000000000123",
        "new_match",
        {"match_id": "m-1"},
    )
    assert len(db.calls) == 1
    sql, params = db.calls[0]
    assert "INSERT INTO notification_outbox" in sql
    assert params["event_type"] == "new_match"
    assert params["user_id"] == "00000000-0000-0000-0000-000000000123"
    assert json.loads(params["payload"]) == {"match_id": "m-1"}


def test_award_progress_points_blank_reference_becomes_null():
    db = FakeDB()
    award_progress_points(db, "00000000-0000-0000-0000-000000000123", 25, "match_created")
    sql, params = db.calls[0]
    assert "INSERT INTO progress_ledger" in sql
    assert "NULLIF(:reference_id, '')" in sql
    assert params["points"] == 25
    assert params["reference_id"] == ""


def test_log_deletion_audit_serializes_metadata():
    db = FakeDB()
    log_deletion_audit(
        db,
        entity_type="match",
        entity_id="00000000-0000-0000-0000-000000000999",
        deleted_by=None,
        deletion_reason="user_block",
        metadata={"user1_id": "a", "user2_id": "b"},
    )
    sql, params = db.calls[0]
    assert "INSERT INTO deletion_audit" in sql
    assert params["deleted_by"] == ""
    assert params["deletion_reason"] == "user_block"
    assert json.loads(params["metadata"]) == {"user1_id": "a", "user2_id": "b"}
