from fastapi import APIRouter, FastAPI

from .admin import router as admin_router
from .candidates import router as candidates_router
from .invites import router as invites_router
from .match import router as match_router
from .safety import router as safety_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(candidates_router, tags=["discovery"])
    app.include_router(match_router, tags=["matches"])
    app.include_router(invites_router, tags=["invites"])
    app.include_router(safety_router, tags=["safety"])
    app.include_router(admin_router, tags=["admin"])


__all__ = ["include_modular_routers", "APIRouter"]
