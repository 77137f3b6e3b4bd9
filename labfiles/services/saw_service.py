"""SAW catalogue service: types and items with soft delete."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from labfiles.models.saw import SawItem, SawType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def get_saw_types(session: AsyncSession) -> list[SawType]:
    """Active SAW types, newest first."""
    stmt = (
        select(SawType)
        .where(SawType.is_active.is_(True))
        .order_by(SawType.created_at.desc(), SawType.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_saw_type(
    session: AsyncSession, name: str, description: str | None = None
) -> SawType:
    saw_type = SawType(name=name, description=description)
    session.add(saw_type)
    await session.commit()
    return saw_type


async def get_saw_items(session: AsyncSession) -> list[SawItem]:
    """Active SAW items with their type, newest first."""
    stmt = (
        select(SawItem)
        .where(SawItem.is_active.is_(True))
        .order_by(SawItem.created_at.desc(), SawItem.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_saw_item(
    session: AsyncSession,
    name: str | None = None,
    description: str | None = None,
    type_id: int | None = None,
    design_parameters: dict[str, Any] | None = None,
) -> SawItem:
    """Create a SAW item.

    Raises ValueError if *type_id* does not name an active SAW type.
    """
    if type_id is not None:
        saw_type = await session.get(SawType, type_id)
        if saw_type is None or not saw_type.is_active:
            raise ValueError(f"SAW type {type_id} does not exist")
    item = SawItem(
        name=name,
        description=description,
        type_id=type_id,
        design_parameters=design_parameters,
    )
    session.add(item)
    await session.commit()
    await session.refresh(item, attribute_names=["type"])
    return item


async def delete_saw_item(session: AsyncSession, item_id: int) -> SawItem | None:
    """Soft-delete a SAW item. Returns None if it does not exist."""
    item = await session.get(SawItem, item_id)
    if item is None:
        return None
    item.is_active = False
    await session.commit()
    return item
