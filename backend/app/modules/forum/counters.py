"""
Atomic counter updates for denormalized forum statistics.
"""

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession


async def apply_counter_delta(
    db: AsyncSession,
    model: type,
    row_id: int,
    field: str,
    delta: int,
) -> None:
    """
    Apply ``delta`` to an integer column without ever going below zero.

    Increments are a single ``SET field = field + delta``. Decrements read
    the current value first and write 0 instead when the result would be
    negative.

    Args:
        db: Active session
        model: Mapped class owning the counter
        row_id: Primary key of the row
        field: Counter column name
        delta: Signed change
    """
    if delta == 0:
        return

    column = getattr(model, field)

    if delta < 0:
        result = await db.execute(select(column).where(model.id == row_id))
        current = result.scalar_one_or_none()
        if current is None:
            logger.warning(f"Counter {model.__name__}.{field}: row {row_id} missing")
            return
        if current + delta < 0:
            logger.debug(
                f"Clamping {model.__name__}({row_id}).{field} at 0 "
                f"(current={current}, delta={delta})"
            )
            await db.execute(
                update(model)
                .where(model.id == row_id)
                .values({field: 0})
            )
            return

    await db.execute(
        update(model)
        .where(model.id == row_id)
        .values({field: column + delta})
    )
