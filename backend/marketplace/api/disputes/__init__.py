"""Disputes API."""
from fastapi import APIRouter

from marketplace.api.disputes import routes_disputes

router = APIRouter()

router.include_router(routes_disputes.router, prefix="/disputes", tags=["disputes"])
