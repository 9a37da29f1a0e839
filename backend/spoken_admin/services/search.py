"""Helpers for case-insensitive substring search in SQL."""

# ESCAPE character passed to ilike() alongside contains_pattern()
LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search for "100%" matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(term: str) -> str:
    return f"%{escape_like(term)}%"
