"""SAW catalogue API endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from labfiles.api.deps import get_session
from labfiles.models.saw import SawItem, SawType
from labfiles.schemas.saw import SawItemCreate, SawItemResponse, SawTypeCreate, SawTypeResponse
from labfiles.services.saw_service import (
    create_saw_item,
    create_saw_type,
    delete_saw_item,
    get_saw_items,
    get_saw_types,
)

router = APIRouter(prefix="/api/saw", tags=["saw"])


@router.get("/types", response_model=list[SawTypeResponse])
async def list_types(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[SawType]:
    """List active SAW types."""
    return await get_saw_types(session)


@router.post("/types", response_model=SawTypeResponse, status_code=201)
async def create_type(
    body: SawTypeCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SawType:
    """Create a SAW type."""
    return await create_saw_type(session, body.name, body.description)


@router.get("/items", response_model=list[SawItemResponse])
async def list_items(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[SawItem]:
    """List active SAW items with their types."""
    return await get_saw_items(session)


@router.post("/items", response_model=SawItemResponse, status_code=201)
async def create_item(
    body: SawItemCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SawItem:
    """Create a SAW item. An unknown ``type_id`` is a 422 via the ValueError handler."""
    return await create_saw_item(
        session,
        name=body.name,
        description=body.description,
        type_id=body.type_id,
        design_parameters=body.design_parameters,
    )


@router.delete("/items/{item_id}", response_model=SawItemResponse)
async def delete_item(
    item_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SawItem:
    """Soft-delete a SAW item."""
    item = await delete_saw_item(session, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="SAW item not found")
    return item
