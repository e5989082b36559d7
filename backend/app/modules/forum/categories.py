"""
Category Registry - forum sections and their aggregate counters.
"""

from datetime import datetime
from typing import Any, Literal

from loguru import logger
from slugify import slugify
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.models.forum import ForumCategory, utcnow
from app.modules.forum.counters import apply_counter_delta

CounterField = Literal["topic_count", "reply_count"]

EDITABLE_FIELDS = {
    "name",
    "description",
    "icon",
    "color",
    "parent_id",
    "display_order",
    "is_active",
    "requires_approval",
    "allowed_roles",
    "moderators",
}

NULLABLE_FIELDS = {"description", "icon", "color", "parent_id"}


class CategoryRegistry:
    """
    Owns category records and their topic/reply totals.

    Usage:
        categories = CategoryRegistry(db_session)
        general = await categories.create_category(name="General")
        await categories.update_counters(general.id, "topic_count", 1)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize registry with database session."""
        self.db = db

    async def get_categories(self, active_only: bool = True) -> list[ForumCategory]:
        """Get categories ordered for display."""
        query = select(ForumCategory).order_by(
            ForumCategory.display_order, ForumCategory.id
        )
        if active_only:
            query = query.where(ForumCategory.is_active == True)  # noqa: E712
        result = await self.db.execute(
            query.execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_category(self, category_id: int) -> ForumCategory:
        """Get category by ID. Raises NotFoundError."""
        query = (
            select(ForumCategory)
            .where(ForumCategory.id == category_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def get_category_by_slug(self, slug: str) -> ForumCategory:
        """Get category by slug. Raises NotFoundError."""
        query = (
            select(ForumCategory)
            .where(ForumCategory.slug == slug)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError("Category", slug)
        return category

    async def create_category(
        self,
        name: str,
        slug: str | None = None,
        description: str | None = None,
        icon: str | None = None,
        color: str | None = None,
        parent_id: int | None = None,
        requires_approval: bool = False,
        allowed_roles: list[str] | None = None,
        moderators: list[str] | None = None,
        display_order: int = 0,
    ) -> ForumCategory:
        """
        Create new forum category with zeroed counters.

        Args:
            name: Display name
            slug: URL slug (derived from name when omitted)
            parent_id: Parent category for subcategories
            requires_approval: New topics/replies wait for a moderator
            allowed_roles: Roles allowed to post (empty = everyone)
            moderators: User IDs moderating this category

        Returns:
            Created category
        """
        if not name or not name.strip():
            raise ValidationError("Category name is required")

        slug = slugify(slug or name)[:100]
        if not slug:
            raise ValidationError("Category slug cannot be empty")

        existing = await self.db.execute(
            select(ForumCategory.id).where(ForumCategory.slug == slug)
        )
        if existing.scalar_one_or_none() is not None:
            raise ValidationError(f"Category slug '{slug}' already exists")

        if parent_id is not None:
            await self.get_category(parent_id)

        category = ForumCategory(
            name=name.strip(),
            slug=slug,
            description=description,
            icon=icon,
            color=color,
            parent_id=parent_id,
            requires_approval=requires_approval,
            allowed_roles=list(allowed_roles or []),
            moderators=list(moderators or []),
            display_order=display_order,
            is_active=True,
            topic_count=0,
            reply_count=0,
        )
        self.db.add(category)
        await self.db.flush()

        logger.info(f"Created forum category: {category.name}")
        return category

    async def update_category(
        self,
        category_id: int,
        changes: dict[str, Any],
    ) -> ForumCategory:
        """Apply editable fields. Counters cannot be patched."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Fields cannot be updated", details={"fields": sorted(unknown)}
            )

        nulls = sorted(
            key
            for key, value in changes.items()
            if value is None and key not in NULLABLE_FIELDS
        )
        if nulls:
            raise ValidationError("Fields cannot be null", details={"fields": nulls})
        if "name" in changes and not str(changes["name"]).strip():
            raise ValidationError("Category name is required")

        category = await self.get_category(category_id)
        if changes.get("parent_id") == category_id:
            raise ValidationError("Category cannot be its own parent")
        if changes.get("parent_id") is not None:
            await self.get_category(changes["parent_id"])

        for key, value in changes.items():
            setattr(category, key, value)
        category.updated_at = utcnow()

        await self.db.flush()
        return category

    async def deactivate_category(self, category_id: int) -> ForumCategory:
        """Soft-delete: hide category and stop accepting topics."""
        return await self.update_category(category_id, {"is_active": False})

    async def update_counters(
        self,
        category_id: int,
        field: CounterField,
        delta: int,
    ) -> None:
        """Change a category total by ``delta``, clamped at zero."""
        if field not in ("topic_count", "reply_count"):
            raise ValidationError(f"Unknown category counter: {field}")
        await apply_counter_delta(self.db, ForumCategory, category_id, field, delta)

    async def touch_last_topic(
        self,
        category_id: int,
        at: datetime,
        by: str,
    ) -> None:
        """Point the category at its newest topic."""
        await self.db.execute(
            update(ForumCategory)
            .where(ForumCategory.id == category_id)
            .values(last_topic_at=at, last_topic_by=by)
        )
