"""
API module.
Contains the FastAPI application, routes and HTML reports.
"""

from jobdispatch.api.main import create_app, run

__all__ = ["create_app", "run"]
