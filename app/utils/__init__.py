"""Utility functions."""

from app.utils.time import local_now, local_today, utc_now

__all__ = ["utc_now", "local_now", "local_today"]
