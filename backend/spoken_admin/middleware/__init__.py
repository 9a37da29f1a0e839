# Middleware package init
"""
Spoken Admin API — Middleware Package
=======================================

What:  Cross-cutting concerns applied around route handlers.

Two layers:

    App-wide (Starlette middleware, every request):
        Request → [Request ID] → [Logging] → [Security Headers] → [CORS/GZip] → Route

    Per-route (ApiPipeline, business routes only):
        Route → [Rate Limit] → [Auth Gate] → [Role] → [Sanitize → Validate] (non-GET) → Handler
              → [Security Headers] → Response

    Why the per-route order:
    1. Rate limit FIRST: reject abusive clients before any identity lookup
    2. Auth second: never parse or validate bodies for anonymous callers
       (the role check, when a route sets one, follows it for the same reason)
    3. Sanitize before validate: bound payload size before the schema walks it
    4. Headers last, on every branch including errors
"""
