"""
schemas/todo.py
---------------
Todo bodies. tenant_id / user_id are never accepted from the client; any
such keys in a request body are ignored.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title is required")
    return v


class TodoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, examples=["Ship v1"])

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return _clean_title(v)


class TodoUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    completed: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        # None means "leave the title alone"
        if v is None:
            return v
        return _clean_title(v)


class TodoRead(BaseModel):
    id: str
    title: str
    completed: bool
    user_id: str
    tenant_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
