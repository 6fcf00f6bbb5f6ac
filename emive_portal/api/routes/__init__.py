from . import (
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

__all__ = [
    "ai_panel",
    "auth",
    "catalog",
    "customer_portfolio_api",
    "customers",
    "inventory",
    "maintenance",
    "notifications",
    "projects",
    "reports",
    "users",
]
