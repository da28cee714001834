"""Central router registry for the API."""
from __future__ import annotations

from fastapi import FastAPI

from invoicegen.routers.auth import router as auth_router
from invoicegen.routers.invoices import router as invoices_router
from invoicegen.routers.users import router as users_router

ALL_ROUTERS = (
    auth_router,
    users_router,
    invoices_router,
)


def include_all_routers(app: FastAPI) -> None:
    for router in ALL_ROUTERS:
        app.include_router(router)
