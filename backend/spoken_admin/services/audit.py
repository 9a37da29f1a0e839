"""
Spoken Admin API — Audit Trail
================================

What:  Records who changed what in the course catalogue.
Why:   Admin mutations (create, delete) must be traceable to an identity,
       separately from the access log which only knows client addresses.
How:   One structured log record per event on the `spoken_admin.audit`
       logger. Metadata passes through redact_sensitive() first, so a handler
       that forwards a request payload cannot leak credentials into the log.

Entry Shape:
    {
        "timestamp": "2026-10-17T12:00:00+00:00",
        "action": "course.create",
        "resource": "course",
        "resource_id": "0b7c…",
        "user_id": "user_2abc…",
        "request_id": "a1b2c3d4",
        "ip": "203.0.113.7",
        "user_agent": "Mozilla/5.0 …",
        "metadata": {"title": "Les bases"}
    }
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from starlette.requests import Request

from spoken_admin.middleware.rate_limit import client_key_from_request
from spoken_admin.middleware.request_id import request_id_var

audit_logger = logging.getLogger("spoken_admin.audit")

REDACTED = "[REDACTED]"

# Any key containing one of these (case-insensitive) has its value replaced
SENSITIVE_KEY_PARTS = ("password", "token", "key", "secret", "auth")


def redact_sensitive(data: Any) -> Any:
    """
    Return a copy of `data` with the values of sensitive keys replaced.

    Dicts are walked recursively, as are lists and tuples inside them.
    Non-container values are returned unchanged.
    """
    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            if any(part in str(key).lower() for part in SENSITIVE_KEY_PARTS):
                redacted[key] = REDACTED
            else:
                redacted[key] = redact_sensitive(value)
        return redacted

    if isinstance(data, (list, tuple)):
        return [redact_sensitive(item) for item in data]

    return data


def record_audit_event(
    action: str,
    resource: str,
    user_id: Optional[str],
    resource_id: Optional[str] = None,
    request: Optional[Request] = None,
    **metadata: Any,
) -> Dict[str, Any]:
    """
    Log one audit entry and return it.

    Args:
        action:      Dotted verb, e.g. "course.create"
        resource:    Resource type, e.g. "course"
        user_id:     Caller id resolved by the auth gate
        resource_id: Id of the affected row, when there is one
        request:     Source request; adds client address and user agent
        **metadata:  Extra fields, redacted before logging
    """
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "resource": resource,
        "resource_id": resource_id,
        "user_id": user_id,
        "request_id": request_id_var.get(""),
        "metadata": redact_sensitive(metadata),
    }
    if request is not None:
        entry["ip"] = client_key_from_request(request)
        entry["user_agent"] = request.headers.get("user-agent")

    audit_logger.info(
        "AUDIT %s %s/%s by %s",
        action,
        resource,
        resource_id or "-",
        user_id or "anonymous",
        extra={"audit": entry},
    )
    return entry
