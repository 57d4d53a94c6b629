"""Chat templates API."""
from fastapi import APIRouter

from marketplace.api.templates import routes_templates

router = APIRouter()

router.include_router(routes_templates.router, prefix="/templates", tags=["templates"])
