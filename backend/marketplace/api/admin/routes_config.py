"""Runtime configuration: business limits staff may retune without a deploy."""
import logging
from typing import Any, Dict
from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError as PydanticValidationError

from marketplace.api.deps import get_current_admin
from marketplace.domain.admin.models import CONFIG_ROLES, User
from marketplace.domain.common.errors import AuthorizationError, ValidationError
from marketplace.settings import RUNTIME_SETTINGS, get_config_store

logger = logging.getLogger(__name__)

router = APIRouter()


def require_config_role(current_user: User = Depends(get_current_admin)) -> User:
    if current_user.role not in CONFIG_ROLES:
        raise AuthorizationError("Only admins can change configuration")
    return current_user


def _runtime_view() -> Dict[str, Any]:
    store = get_config_store()
    current = store.get_settings()
    return {
        "settings": {key: getattr(current, key) for key in RUNTIME_SETTINGS},
        "overrides": store.overrides,
    }


@router.get("/config")
async def get_config(current_user: User = Depends(require_config_role)):
    return {"success": True, **_runtime_view()}


@router.put("/config")
async def update_config(
    body: Dict[str, Any] = Body(...),
    current_user: User = Depends(require_config_role),
):
    """Override runtime settings. Keys outside RUNTIME_SETTINGS (the filter vocabulary included) are rejected."""
    try:
        get_config_store().update(body, allowed=RUNTIME_SETTINGS)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid configuration value: {e.errors()[0]['msg']}") from e
    except ValueError as e:
        raise ValidationError(str(e)) from e
    logger.info("Config updated by %s: %s", current_user.id, sorted(body))
    return {"success": True, **_runtime_view()}


@router.post("/config/reload")
async def reload_config(current_user: User = Depends(require_config_role)):
    """Re-read the config file; overrides stay on top."""
    try:
        get_config_store().reload_from_file()
    except PydanticValidationError as e:
        raise ValidationError(f"Config file rejected: {e.errors()[0]['msg']}") from e
    logger.info("Config file reloaded by %s", current_user.id)
    return {"success": True, **_runtime_view()}


@router.delete("/config/overrides")
async def clear_config_overrides(current_user: User = Depends(require_config_role)):
    get_config_store().clear_overrides()
    return {"success": True, **_runtime_view()}
