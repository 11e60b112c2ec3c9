"""Routers package."""

from . import (
    health,
    auth,
    expand,
    billing,
    credentials,
    ideas,
)
