"""
Spoken Admin API — Input Sanitization
=======================================

What:  Size bounds for decoded JSON bodies, and an allow-list HTML cleaner
       for rich-text fields.
Why:   Request bodies are untrusted: a client can send megabyte strings,
       thousands of array items or keys, and markup that the admin UI would
       render as live HTML.
How:   sanitize() walks the decoded value and cuts it to fixed bounds before
       schema validation sees it. sanitize_html() delegates to nh3 (the
       ammonia HTML sanitizer), which parses the markup with a real HTML
       parser and serializes only the allowed tags.
Who:   ApiPipeline runs sanitize() on every validated body and on route
       params; the course schemas run sanitize_html() on descriptions.

Bounds:
    str    stripped, cut to 10,000 characters, stripped again at the cut
    list   first 100 items
    dict   first 50 keys; keys that are not str or longer than 100 are dropped

    Every output is within bounds, so sanitize(sanitize(x)) == sanitize(x).

Rich Text:
    Allowed tags: p br strong em u ol ul li, with no attributes at all.
    script, style, iframe and object are dropped together with their content;
    any other tag is dropped and its text kept. Text is entity-escaped, so
    fragments of a stripped tag can never join into a new one.
"""

from typing import Any

import nh3

MAX_STRING_LENGTH = 10_000
MAX_ARRAY_LENGTH = 100
MAX_OBJECT_KEYS = 50
MAX_KEY_LENGTH = 100

ALLOWED_HTML_TAGS = frozenset({"p", "br", "strong", "em", "u", "ol", "ul", "li"})
DROPPED_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object"})


def sanitize(value: Any) -> Any:
    """
    Bound the size of a decoded JSON value before it reaches validation.

    - str: stripped, then cut to MAX_STRING_LENGTH characters (whitespace left
      at the cut is stripped too)
    - list/tuple: first MAX_ARRAY_LENGTH items, each sanitized (returns a list)
    - dict: first MAX_OBJECT_KEYS keys in iteration order; pairs whose key is
      not a str of at most MAX_KEY_LENGTH characters are dropped
    - anything else: returned unchanged
    """
    if isinstance(value, str):
        return value.strip()[:MAX_STRING_LENGTH].rstrip()

    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value[:MAX_ARRAY_LENGTH]]

    if isinstance(value, dict):
        sanitized = {}
        for key in list(value.keys())[:MAX_OBJECT_KEYS]:
            if isinstance(key, str) and len(key) <= MAX_KEY_LENGTH:
                sanitized[key] = sanitize(value[key])
        return sanitized

    return value


def sanitize_html(content: str | None) -> str:
    """Clean rich text down to ALLOWED_HTML_TAGS without attributes."""
    if not content:
        return ""

    return nh3.clean(
        content,
        tags=set(ALLOWED_HTML_TAGS),
        clean_content_tags=set(DROPPED_CONTENT_TAGS),
        attributes={},
    )
