"""
HTTP API for the audit pipeline.
"""

from sentry.api.app import create_app, start_server

__all__ = ["create_app", "start_server"]
