"""
API Package.

FastAPI application for the back office: user, dashboard and
admin routers under /api/v1, one response envelope, and domain
error translation.
"""
