"""
api/routes/todos.py
-------------------
Tenant-scoped todo endpoints. The DALContext comes from the session; the
request body can never choose the tenant or owner.

GET    /todos              — List the tenant's todos
POST   /todos              — Create a todo
GET    /todos/{id}         — Fetch one
PATCH  /todos/{id}         — Update title / completed
POST   /todos/{id}/toggle  — Flip completed
DELETE /todos/{id}         — Delete
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.permissions import Action
from saaskit.db.session import get_db
from saaskit.dependencies import CurrentUser, require_capability
from saaskit.schemas.todo import TodoCreate, TodoRead, TodoUpdate
from saaskit.services.todo_service import TodoService

router = APIRouter(prefix="/todos", tags=["Todos"])

CanRead = Annotated[CurrentUser, Depends(require_capability(Action.todo_read))]
CanWrite = Annotated[CurrentUser, Depends(require_capability(Action.todo_write))]


@router.get("", response_model=list[TodoRead], summary="List todos in the current tenant")
async def list_todos(
    db: Annotated[AsyncSession, Depends(get_db)],
    current: CanRead,
) -> list[TodoRead]:
    todos = await TodoService.list_todos(db, current.ctx)
    return [TodoRead.model_validate(t) for t in todos]


@router.post(
    "",
    response_model=TodoRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a todo",
)
async def create_todo(
    body: TodoCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: CanWrite,
) -> TodoRead:
    todo = await TodoService.create_todo(db, current.ctx, body)
    return TodoRead.model_validate(todo)


@router.get("/{todo_id}", response_model=TodoRead, summary="Get a todo")
async def get_todo(
    todo_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: CanRead,
) -> TodoRead:
    todo = await TodoService.get_todo_or_raise(db, current.ctx, todo_id)
    return TodoRead.model_validate(todo)


@router.patch("/{todo_id}", response_model=TodoRead, summary="Update a todo")
async def update_todo(
    todo_id: str,
    body: TodoUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: CanWrite,
) -> TodoRead:
    todo = await TodoService.update_todo(db, current.ctx, todo_id, body)
    return TodoRead.model_validate(todo)


@router.post("/{todo_id}/toggle", response_model=TodoRead, summary="Toggle completed")
async def toggle_todo(
    todo_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: CanWrite,
) -> TodoRead:
    todo = await TodoService.toggle_todo(db, current.ctx, todo_id)
    return TodoRead.model_validate(todo)


@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a todo",
)
async def delete_todo(
    todo_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: CanWrite,
) -> None:
    await TodoService.delete_todo(db, current.ctx, todo_id)
