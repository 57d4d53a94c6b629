"""Tokens API."""
from fastapi import APIRouter

from marketplace.api.tokens import routes_tokens

router = APIRouter()

router.include_router(routes_tokens.router, prefix="/tokens", tags=["tokens"])
