from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from emive_portal.api.routes import (
    ai_panel,
    auth,
    catalog,
    customer_portfolio_api,
    customers,
    inventory,
    maintenance,
    notifications,
    projects,
    reports,
    users,
)
from emive_portal.core.config import get_settings
from emive_portal.core.database import db
from emive_portal.core.logging import configure_logging, log_error, log_info
from emive_portal.security.csrf import CSRFMiddleware
from emive_portal.security.request_logger import RequestLoggingMiddleware
from emive_portal.services.scheduler import scheduler_service

configure_logging()
settings = get_settings()

tags_metadata = [
    {"name": "Authentication", "description": "Login, logout, session and password endpoints."},
    {"name": "Users", "description": "User administration for the portal roles."},
    {"name": "Customer Portfolio", "description": "Customer portfolio (carteira de clientes) and documents."},
    {"name": "Customer Portfolio API", "description": "External API-key access to the customer portfolio."},
    {"name": "Projects", "description": "Project intake, engineering workflow and sale forms."},
    {"name": "Maintenance", "description": "Maintenance tickets and preventive schedules."},
    {"name": "Inventory", "description": "Stock control, spreadsheet imports and critical item export."},
    {"name": "Catalog", "description": "Quoting catalog products, kits and pricing rules."},
    {"name": "AI Panel", "description": "AI assistant monitoring and chat."},
    {"name": "Reports", "description": "Engineering and maintenance period reports."},
    {"name": "Notifications", "description": "In-app notifications for the current user."},
]

app = FastAPI(
    title=settings.app_name,
    description="Business operations API for customer portfolio, projects, maintenance, stock and quoting.",
    openapi_tags=tags_metadata,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.allowed_origins] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    RequestLoggingMiddleware,
    exempt_paths=("/health",),
)

app.add_middleware(CSRFMiddleware)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(customers.router)
app.include_router(customer_portfolio_api.router)
app.include_router(projects.router)
app.include_router(maintenance.router)
app.include_router(inventory.router)
app.include_router(catalog.router)
app.include_router(ai_panel.router)
app.include_router(reports.router)
app.include_router(notifications.router)


@app.get("/health", tags=["Authentication"], include_in_schema=False)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("startup")
async def on_startup() -> None:
    await db.connect()
    await db.run_migrations()
    try:
        await scheduler_service.start()
    except Exception as exc:  # pragma: no cover
        log_error("Scheduler failed to start", error=str(exc))
    log_info("Application startup complete", environment=settings.environment)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await scheduler_service.stop()
    await db.disconnect()
    log_info("Application shutdown")
