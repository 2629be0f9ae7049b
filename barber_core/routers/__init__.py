# Routers package
from . import auth_router
from . import customers_router

__all__ = [
    "auth_router",
    "customers_router",
]
