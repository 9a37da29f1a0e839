# Routes package init
"""
Spoken Admin API — API Routes Package
=======================================

Route Inventory:
    - courses.py: GET    /api/courses               (list, search, stats)
                  POST   /api/courses               (create)
                  GET    /api/courses/{course_id}   (detail)
                  PUT    /api/courses/{course_id}   (partial update)
                  DELETE /api/courses/{course_id}   (delete)
    - users.py:   GET    /api/users                 (list, search)  admin only
                  GET    /api/users/{user_id}       (detail)        admin only
                  PUT    /api/users/{user_id}       (update)        admin only
                  DELETE /api/users/{user_id}       (delete)        admin only
    - health.py:  GET    /health                    (service health check)

Course and learner routes are built by build_router(pipeline): every handler
runs behind the ApiPipeline the application was created with, so rate
limiting, the auth gate, the role check and body validation are configured
per route next to the handler.
Health is a plain FastAPI route outside the pipeline (no auth, no limit).
"""
