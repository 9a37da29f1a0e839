# Models package init
"""SQLAlchemy ORM models. alembic/env.py imports each one so --autogenerate sees it."""
