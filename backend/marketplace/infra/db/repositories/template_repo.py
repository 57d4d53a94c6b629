"""Chat template repository implementation."""
from typing import Optional, List, Dict
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from marketplace.domain.template.models import ChatTemplate, TemplateCategory, STAFF_ONLY_CATEGORIES
from marketplace.infra.db.models.chat import ChatTemplateModel


class TemplateRepository:
    """Chat template repository interface."""

    async def create(self, template: ChatTemplate) -> ChatTemplate:
        raise NotImplementedError

    async def get(self, template_id: str) -> Optional[ChatTemplate]:
        raise NotImplementedError

    async def find_by_text(self, category: TemplateCategory, template_text: str) -> Optional[ChatTemplate]:
        raise NotImplementedError

    async def list(
        self,
        category: Optional[TemplateCategory] = None,
        include_staff_only: bool = False,
        active_only: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ChatTemplate]:
        """Ordered by category, then most used first."""
        raise NotImplementedError

    async def update(self, template_id: str, **values) -> bool:
        raise NotImplementedError

    async def increment_usage(self, template_id: str) -> None:
        """Atomic ``usage_count = usage_count + 1``, committed on its own."""
        raise NotImplementedError

    async def count_by_category(self) -> Dict[str, int]:
        """Active templates per category."""
        raise NotImplementedError

    async def top_by_usage(self, limit: int = 10) -> List[ChatTemplate]:
        raise NotImplementedError


class TemplateRepositoryImpl(TemplateRepository):
    """Template repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, template: ChatTemplate) -> ChatTemplate:
        model = ChatTemplateModel.from_entity(template)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get(self, template_id: str) -> Optional[ChatTemplate]:
        result = await self.session.execute(
            select(ChatTemplateModel)
            .where(ChatTemplateModel.id == template_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def find_by_text(self, category: TemplateCategory, template_text: str) -> Optional[ChatTemplate]:
        result = await self.session.execute(
            select(ChatTemplateModel).where(
                ChatTemplateModel.category == category.value,
                ChatTemplateModel.template_text == template_text,
            )
        )
        model = result.scalars().first()
        return model.to_entity() if model else None

    async def list(
        self,
        category: Optional[TemplateCategory] = None,
        include_staff_only: bool = False,
        active_only: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ChatTemplate]:
        q = select(ChatTemplateModel)
        if active_only:
            q = q.where(ChatTemplateModel.is_active.is_(True))
        if category is not None:
            q = q.where(ChatTemplateModel.category == category.value)
        if not include_staff_only:
            q = q.where(ChatTemplateModel.category.notin_([c.value for c in STAFF_ONLY_CATEGORIES]))
        q = q.order_by(
            ChatTemplateModel.category.asc(),
            ChatTemplateModel.usage_count.desc(),
            ChatTemplateModel.created_at.asc(),
        ).limit(limit).offset(offset)
        result = await self.session.execute(q)
        return [m.to_entity() for m in result.scalars().all()]

    async def update(self, template_id: str, **values) -> bool:
        values["updated_at"] = datetime.utcnow()
        result = await self.session.execute(
            update(ChatTemplateModel)
            .where(ChatTemplateModel.id == template_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_usage(self, template_id: str) -> None:
        await self.session.execute(
            update(ChatTemplateModel)
            .where(ChatTemplateModel.id == template_id)
            .values(usage_count=ChatTemplateModel.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def count_by_category(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(ChatTemplateModel.category, func.count())
            .where(ChatTemplateModel.is_active.is_(True))
            .group_by(ChatTemplateModel.category)
        )
        return {category: count for category, count in result.all()}

    async def top_by_usage(self, limit: int = 10) -> List[ChatTemplate]:
        result = await self.session.execute(
            select(ChatTemplateModel)
            .where(ChatTemplateModel.is_active.is_(True))
            .order_by(ChatTemplateModel.usage_count.desc(), ChatTemplateModel.created_at.asc())
            .limit(limit)
        )
        return [m.to_entity() for m in result.scalars().all()]
