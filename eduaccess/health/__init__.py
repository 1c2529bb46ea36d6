"""Health check module."""

from eduaccess.health.router import router


__all__ = ["router"]
