"""SAW catalogue schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SawTypeCreate(BaseModel):
    """Request to create a SAW type."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)


class SawTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    created_at: datetime


class SawItemCreate(BaseModel):
    """Request to create a SAW item."""

    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=10_000)
    type_id: int | None = None
    design_parameters: dict[str, Any] | None = None


class SawItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    description: str | None = None
    type_id: int | None = None
    type: SawTypeResponse | None = None
    design_parameters: dict[str, Any] | None = None
    is_active: bool
    created_at: datetime
