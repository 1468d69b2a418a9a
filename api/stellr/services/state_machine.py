REQUEST_STATUSES = {"pending", "confirmed", "rejected", "expired", "fulfilled"}
DELETABLE_REQUEST_STATUSES = {"pending", "rejected"}
RESPONSE_ACTIONS = {"confirm", "reject"}


def transition_request(current: str, action: str) -> str:
    if current == "fulfilled":
        return "fulfilled"

    if action == "confirm":
        if current == "pending":
            return "confirmed"
        return current

    if action == "reject":
        if current == "pending":
            return "rejected"
        return current

    if action == "expire":
        if current == "pending":
            return "expired"
        return current

    if action == "fulfill":
        if current == "confirmed":
            return "fulfilled"
        return current

    return current


def can_delete(status: str) -> bool:
    return status in DELETABLE_REQUEST_STATUSES
