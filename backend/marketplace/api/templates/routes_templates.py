"""Chat template routes: catalog, staff administration, and sending into a booking chat."""
from datetime import datetime
from typing import Any, Optional, Dict, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import build_template_service, get_current_admin, get_current_user, get_db
from marketplace.api.schemas import CamelModel
from marketplace.domain.admin.models import User
from marketplace.domain.chat.services import message_payload
from marketplace.domain.template.models import ChatTemplate

router = APIRouter()


class TemplateResponse(CamelModel):
    id: str
    category: str
    template_text: str
    description: Optional[str] = None
    variables: List[str]
    usage_count: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, template: ChatTemplate) -> "TemplateResponse":
        return cls(
            id=template.id,
            category=template.category.value,
            template_text=template.template_text,
            description=template.description,
            variables=template.variables,
            usage_count=template.usage_count,
            is_active=template.is_active,
            created_at=template.created_at,
            updated_at=template.updated_at,
        )


class CreateTemplateRequest(CamelModel):
    category: str
    template_text: str
    description: Optional[str] = None


class UpdateTemplateRequest(CamelModel):
    category: Optional[str] = None
    template_text: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class SendTemplateRequest(CamelModel):
    booking_id: str
    template_id: str
    variables: Dict[str, Any] = {}


@router.get("")
async def list_templates(
    category: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active templates, optionally for one category."""
    templates = await build_template_service(db).list_templates(current_user, category=category)
    return {"success": True, "templates": [TemplateResponse.from_entity(t) for t in templates]}


@router.get("/categories")
async def list_templates_by_category(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    grouped = await build_template_service(db).list_by_category(current_user)
    return {
        "success": True,
        "categories": {
            category: [TemplateResponse.from_entity(t) for t in templates]
            for category, templates in grouped.items()
        },
    }


@router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_template(
    request: SendTemplateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Render a template and post it through the regular chat path."""
    message = await build_template_service(db).send_template(
        current_user, request.booking_id, request.template_id, request.variables
    )
    return {"success": True, "message": message_payload(message)}


@router.get("/admin/all")
async def list_all_templates(
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=200),
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every template, inactive included (staff only)."""
    templates = await build_template_service(db).list_all(
        current_user, category=category, limit=limit, offset=(page - 1) * limit
    )
    return {"success": True, "templates": [TemplateResponse.from_entity(t) for t in templates]}


@router.get("/admin/stats")
async def template_stats(
    top: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    stats = await build_template_service(db).stats(current_user, top=top)
    stats["topTemplates"] = [TemplateResponse.from_entity(t) for t in stats["topTemplates"]]
    return {"success": True, "stats": stats}


@router.get("/{template_id}")
async def get_template(
    template_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    template = await build_template_service(db).get_template(template_id, current_user)
    return {"success": True, "template": TemplateResponse.from_entity(template)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_template(
    request: CreateTemplateRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await build_template_service(db).create_template(
        current_user, request.category, request.template_text, request.description
    )
    return {"success": True, "template": TemplateResponse.from_entity(template)}


@router.put("/{template_id}")
async def update_template(
    template_id: str,
    request: UpdateTemplateRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await build_template_service(db).update_template(
        current_user,
        template_id,
        category=request.category,
        template_text=request.template_text,
        description=request.description,
        is_active=request.is_active,
    )
    return {"success": True, "template": TemplateResponse.from_entity(template)}


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete."""
    await build_template_service(db).delete_template(current_user, template_id)
    return {"success": True}
