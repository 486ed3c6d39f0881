# Routers package
from . import (
    admin_router,
    billing_router,
    paddle_router,
)

__all__ = [
    "admin_router",
    "billing_router",
    "paddle_router",
]
