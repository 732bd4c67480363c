"""Top-level API router."""

from fastapi import APIRouter

from agiletrack.api.routes.dashboards import router as dashboards_router
from agiletrack.api.routes.exports import router as exports_router
from agiletrack.api.routes.finance import router as finance_router
from agiletrack.api.routes.health import router as health_router
from agiletrack.api.routes.me import router as me_router
from agiletrack.api.routes.reports import router as reports_router
from agiletrack.api.routes.tasks import router as tasks_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(dashboards_router)
api_router.include_router(finance_router)
api_router.include_router(reports_router)
api_router.include_router(tasks_router)
api_router.include_router(exports_router)
