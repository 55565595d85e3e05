from fastapi import APIRouter, FastAPI

from .admin import router as admin_router
from .connections import router as connections_router
from .favorites import router as favorites_router
from .matches import router as matches_router
from .notifications import router as notifications_router
from .views import router as views_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(connections_router, tags=["connections"])
    app.include_router(favorites_router, tags=["favorites"])
    app.include_router(matches_router, tags=["matches"])
    app.include_router(views_router, tags=["views"])
    app.include_router(notifications_router, tags=["notifications"])
    app.include_router(admin_router, tags=["admin"])


__all__ = ["include_modular_routers", "APIRouter"]
