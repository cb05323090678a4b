from fastapi import APIRouter

from .routes import (
    customers,
    health,
    purchases,
    qr,
    settings,
)

api_router = APIRouter()

# Health check
api_router.include_router(health.router, tags=["health"])

# Customer cards: registration is public, management is admin-only
api_router.include_router(customers.router, tags=["customers"])

# Purchase ledger, history and dashboard stats
api_router.include_router(purchases.router, tags=["purchases"])

# Customer-facing extras
api_router.include_router(qr.router, tags=["qr"])
api_router.include_router(settings.router, tags=["settings"])
