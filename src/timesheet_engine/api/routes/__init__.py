"""API routes."""

from timesheet_engine.api.routes.approvals import router as approvals_router
from timesheet_engine.api.routes.auth import router as auth_router
from timesheet_engine.api.routes.health import router as health_router
from timesheet_engine.api.routes.notifications import router as notifications_router
from timesheet_engine.api.routes.reports import router as reports_router
from timesheet_engine.api.routes.timesheets import router as timesheets_router
from timesheet_engine.api.routes.users import router as users_router

__all__ = [
    "approvals_router",
    "auth_router",
    "health_router",
    "notifications_router",
    "reports_router",
    "timesheets_router",
    "users_router",
]
