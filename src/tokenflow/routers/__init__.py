"""Routers package public exports."""

__all__ = [
    "approvals",
    "health",
    "recovery",
]
