from fastapi import FastAPI

from .admin import router as admin_router


def include_routers(app: FastAPI) -> None:
    app.include_router(admin_router, prefix="/admin", tags=["admin"])


__all__ = ["include_routers"]
