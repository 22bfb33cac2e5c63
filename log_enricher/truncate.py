"""Bounded string truncation for error annotations."""

MAX_FIELD_LENGTH = 1024
ELLIPSIS = "..."


def truncate(text, limit: int = MAX_FIELD_LENGTH):
    """Cut *text* so it is at most *limit* characters long.

    Truncated text ends with an ellipsis. Non-string values are returned
    unchanged.
    """
    if not isinstance(text, str) or len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:limit]
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS
