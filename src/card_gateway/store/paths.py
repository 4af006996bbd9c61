"""Document path templates."""

USERS = "users"
CARD_STATUS = "card_status"


def validate_segment(segment: str) -> str:
    if not segment or "/" in segment:
        raise ValueError(f"Invalid document id: {segment!r}")
    return segment


def document_path(*segments: str) -> str:
    """Join collection/document segments into a store path."""
    return "/".join(validate_segment(s) for s in segments)


def user_path(user_id: str) -> str:
    return document_path(USERS, user_id)


def card_status_path(user_id: str, card_id: str) -> str:
    return document_path(USERS, user_id, CARD_STATUS, card_id)
