"""Shared utility helpers used across services."""


def safe_float(v):
    """Safely convert a value to float, returning None on failure."""
    if v is None:
        return None
    try:
        return float(v)
    except (ValueError, TypeError):
        return None


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to limit chars, marking the cut with suffix."""
    if text is None:
        return ""
    return text if len(text) <= limit else text[:limit] + suffix
