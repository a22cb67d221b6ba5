"""
myRC HTTP API

FastAPI application over the kernel and module services.  Each request
gets one SQLAlchemy session, committed when the route returns and rolled
back on error; the audit trail writes through its own session.
"""

from myrc_api.app import create_app

__all__ = ["create_app"]
