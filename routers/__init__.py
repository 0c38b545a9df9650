"""API routers package."""

from routers import pages, rates

__all__ = ["pages", "rates"]
