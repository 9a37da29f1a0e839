# Schemas package init
"""Pydantic request/response models shared by the pipeline, routes and services."""
