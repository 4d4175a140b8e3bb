"""Development backend -- echo endpoint and fixed-size download payload."""

from .app import create_app, run_server

__all__ = ["create_app", "run_server"]
