import json
import uuid
from typing import Any

from sqlalchemy import text


def enqueue_notification(
    db,
    user_id: str,
    event_type: str,
    payload: dict[str, Any] | None = None,
) -> None:
    payload = payload or {}
    db.execute(
        text(
            """
            INSERT INTO notification_outbox (id, user_id, event_type, payload)
            VALUES (:id, CAST(:user_id AS uuid), :event_type, CAST(:payload AS jsonb))
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "event_type": event_type,
            "payload": json.dumps(payload, default=str),
        },
    )


def award_progress_points(
    db,
    user_id: str,
    points: int,
    reason: str,
    reference_id: str | None = None,
) -> None:
    db.execute(
        text(
            """
            INSERT INTO progress_ledger (id, user_id, points, reason, reference_id)
            VALUES (:id, CAST(:user_id AS uuid), :points, :reason, CAST(NULLIF(:reference_id, '') AS uuid))
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "points": int(points),
            "reason": reason,
            "reference_id": reference_id or "",
        },
    )


def log_deletion_audit(
    db,
    *,
    entity_type: str,
    entity_id: str,
    deleted_by: str | None,
    deletion_reason: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    metadata = metadata or {}
    db.execute(
        text(
            """
            INSERT INTO deletion_audit (id, entity_type, entity_id, deleted_by, deletion_reason, deletion_metadata)
            VALUES (
              :id,
              :entity_type,
              CAST(:entity_id AS uuid),
              CAST(NULLIF(:deleted_by, '') AS uuid),
              :deletion_reason,
              CAST(:metadata AS jsonb)
            )
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "entity_type": entity_type,
            "entity_id": entity_id,
            "deleted_by": deleted_by or "",
            "deletion_reason": deletion_reason,
            "metadata": json.dumps(metadata, default=str),
        },
    )
