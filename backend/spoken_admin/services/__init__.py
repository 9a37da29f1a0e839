# Services package init
"""
Spoken Admin API — Services Layer
===================================

What:  Business logic between the route handlers and the database.
Why:   Handlers deal with RequestContext and HTTP responses; services deal
       with course and learner rules and persistence, and can be tested with
       a mocked session.

Service Inventory:
    - CourseService: list/search, fetch, create, update and delete courses
    - UserService:   list/search, fetch, update and delete learner accounts
    - search:        LIKE wildcard escaping for both searches
    - audit:         structured audit trail for admin mutations
"""
