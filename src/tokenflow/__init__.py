"""Single-use approval and password-recovery links."""

__all__ = [
    "domain",
    "infrastructure",
    "middleware",
    "ports",
    "routers",
    "schemas",
    "services",
]
