"""Template messaging: a curated catalog rendered into booking chat."""
import logging
from typing import Optional, Dict, List, Mapping
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.admin.models import User
from marketplace.domain.chat.gate import check_can_send
from marketplace.domain.chat.models import Message
from marketplace.domain.chat.services import ChatService
from marketplace.domain.common.errors import AuthorizationError, NotFoundError, ValidationError
from marketplace.domain.template.models import ChatTemplate, TemplateCategory
from marketplace.domain.template.rendering import extract_variables, render
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.template_repo import TemplateRepository

logger = logging.getLogger(__name__)

MAX_TEMPLATE_LENGTH = 1000


def parse_category(value) -> Optional[TemplateCategory]:
    if value is None or value == "":
        return None
    try:
        return TemplateCategory(value)
    except ValueError:
        raise ValidationError(f"Invalid template category: {value}", field="category")


def clean_text(value: Optional[str]) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError("Template text is required", field="templateText")
    if len(text) > MAX_TEMPLATE_LENGTH:
        raise ValidationError(
            f"Template text must be at most {MAX_TEMPLATE_LENGTH} characters", field="templateText"
        )
    return text


def require_admin(user: User) -> None:
    if not user.is_admin:
        raise AuthorizationError("Admin access required")


class TemplateService:
    """Catalog reads for everyone, writes for staff, and sending through the chat gate."""

    def __init__(self, repo: TemplateRepository, chat: ChatService, db: AsyncSession):
        self.repo = repo
        self.chat = chat
        self.db = db

    async def list_templates(self, user: User, category=None) -> List[ChatTemplate]:
        """Active templates. SYSTEM templates are listed for staff only."""
        category = parse_category(category)
        return await self.repo.list(category=category, include_staff_only=user.is_admin)

    async def list_by_category(self, user: User) -> Dict[str, List[ChatTemplate]]:
        grouped: Dict[str, List[ChatTemplate]] = {}
        for template in await self.list_templates(user):
            grouped.setdefault(template.category.value, []).append(template)
        return grouped

    async def list_all(self, actor: User, category=None, limit: int = 100, offset: int = 0) -> List[ChatTemplate]:
        """Staff view, inactive templates included."""
        require_admin(actor)
        return await self.repo.list(
            category=parse_category(category), include_staff_only=True, active_only=False,
            limit=limit, offset=offset,
        )

    async def get_template(self, template_id: str, user: User) -> ChatTemplate:
        """Inactive and staff-only templates look missing to regular users."""
        template = await self.repo.get(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        if not user.is_admin and (not template.is_active or template.staff_only):
            raise NotFoundError("Template", template_id)
        return template

    async def create_template(
        self, actor: User, category, template_text: Optional[str], description: Optional[str] = None
    ) -> ChatTemplate:
        require_admin(actor)
        category = parse_category(category)
        if category is None:
            raise ValidationError("Category is required", field="category")
        text = clean_text(template_text)
        template = ChatTemplate.create(
            category=category,
            template_text=text,
            variables=extract_variables(text),
            description=description,
            created_by=actor.id,
        )
        created = await run_atomic(self.db, lambda: self.repo.create(template), label="template create")
        logger.info("Template %s created by %s (%s)", created.id, actor.id, category.value)
        return created

    async def update_template(
        self,
        actor: User,
        template_id: str,
        category=None,
        template_text: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> ChatTemplate:
        """Partial update; variables are recomputed whenever the text changes."""
        require_admin(actor)
        values = {}
        category = parse_category(category)
        if category is not None:
            values["category"] = category.value
        if template_text is not None:
            text = clean_text(template_text)
            values["template_text"] = text
            values["variables"] = extract_variables(text)
        if description is not None:
            values["description"] = description
        if is_active is not None:
            values["is_active"] = is_active

        async def _update() -> ChatTemplate:
            if not values:
                template = await self.repo.get(template_id)
            elif await self.repo.update(template_id, **values):
                template = await self.repo.get(template_id)
            else:
                template = None
            if template is None:
                raise NotFoundError("Template", template_id)
            return template

        template = await run_atomic(self.db, _update, label="template update")
        logger.info("Template %s updated by %s: %s", template_id, actor.id, sorted(values))
        return template

    async def delete_template(self, actor: User, template_id: str) -> None:
        """Soft delete: the template stops being listed or sendable."""
        await self.update_template(actor, template_id, is_active=False)

    async def stats(self, actor: User, top: int = 10) -> dict:
        require_admin(actor)
        by_category = await self.repo.count_by_category()
        top_templates = await self.repo.top_by_usage(limit=top)
        return {
            "totalActive": sum(by_category.values()),
            "byCategory": {c.value: by_category.get(c.value, 0) for c in TemplateCategory},
            "topTemplates": top_templates,
        }

    async def send_template(
        self,
        user: User,
        booking_id: str,
        template_id: str,
        variables: Optional[Mapping[str, object]] = None,
    ) -> Message:
        """Render and post through the regular chat path, then bump the usage counter."""
        template = await self.repo.get(template_id)
        if template is None or not template.is_active:
            raise NotFoundError("Template", template_id)
        if template.staff_only and not user.is_admin:
            raise AuthorizationError("This template is reserved for staff")
        booking = await self.chat.booking_repo.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        check_can_send(booking, user)
        content = render(template.template_text, variables)

        message = await self.chat.send_message(booking_id, user, content, template_id=template.id)
        try:
            await self.repo.increment_usage(template.id)
        except Exception as e:
            await self.db.rollback()
            logger.warning("Usage count update for template %s failed: %s", template.id, e)
        return message
