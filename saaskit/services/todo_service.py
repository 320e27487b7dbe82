"""
services/todo_service.py
------------------------
Tenant-scoped data access for todos.

Critical security invariant:
  Every query MUST include tenant_id in the WHERE clause, and that tenant_id
  comes from the DALContext only.

Reads by id fetch first and raise ForbiddenError when the row belongs to
another tenant. Writes do that same check and then repeat
`tenant_id = ctx.tenant_id` in the UPDATE/DELETE predicate itself, so a
refactor that drops the pre-check still cannot touch another tenant's row.
"""

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.core.errors import DatabaseError, ForbiddenError, NotFoundError
from saaskit.core.logging import get_logger
from saaskit.models.todo import Todo
from saaskit.schemas.todo import TodoCreate, TodoUpdate
from saaskit.services.context import DALContext, validate_context

logger = get_logger(__name__)


class TodoService:

    @staticmethod
    async def list_todos(db: AsyncSession, ctx: DALContext) -> list[Todo]:
        validate_context(ctx)
        try:
            result = await db.execute(
                select(Todo)
                .where(Todo.tenant_id == ctx.tenant_id)
                .order_by(Todo.created_at.desc())
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to list todos", tenant_id=ctx.tenant_id, error=str(exc))
            raise DatabaseError("Failed to fetch todos")
        return list(result.scalars().all())

    @staticmethod
    async def get_todo(db: AsyncSession, ctx: DALContext, todo_id: str) -> Todo | None:
        """
        None when no such todo exists.
        Raises ForbiddenError when it exists in another tenant.
        """
        validate_context(ctx)
        result = await db.execute(select(Todo).where(Todo.id == todo_id))
        todo = result.scalar_one_or_none()
        if todo is None:
            return None
        if todo.tenant_id != ctx.tenant_id:
            logger.warning(
                "Cross-tenant todo access blocked",
                todo_id=todo_id,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
            )
            raise ForbiddenError("Access denied")
        return todo

    @staticmethod
    async def get_todo_or_raise(db: AsyncSession, ctx: DALContext, todo_id: str) -> Todo:
        todo = await TodoService.get_todo(db, ctx, todo_id)
        if todo is None:
            raise NotFoundError("Todo not found")
        return todo

    @staticmethod
    async def create_todo(db: AsyncSession, ctx: DALContext, data: TodoCreate) -> Todo:
        validate_context(ctx)
        todo = Todo(
            title=data.title,
            completed=False,
            user_id=ctx.user_id,
            tenant_id=ctx.tenant_id,
        )
        db.add(todo)
        await db.flush()
        logger.info("Todo created", todo_id=todo.id, tenant_id=ctx.tenant_id)
        return todo

    @staticmethod
    async def update_todo(
        db: AsyncSession, ctx: DALContext, todo_id: str, data: TodoUpdate
    ) -> Todo:
        todo = await TodoService.get_todo_or_raise(db, ctx, todo_id)
        values = data.model_dump(exclude_unset=True, exclude_none=True)
        if not values:
            return todo

        await db.execute(
            update(Todo)
            .where(Todo.id == todo_id, Todo.tenant_id == ctx.tenant_id)
            .values(**values)
        )
        await db.refresh(todo)
        return todo

    @staticmethod
    async def toggle_todo(db: AsyncSession, ctx: DALContext, todo_id: str) -> Todo:
        todo = await TodoService.get_todo_or_raise(db, ctx, todo_id)
        await db.execute(
            update(Todo)
            .where(Todo.id == todo_id, Todo.tenant_id == ctx.tenant_id)
            .values(completed=not todo.completed)
        )
        await db.refresh(todo)
        return todo

    @staticmethod
    async def delete_todo(db: AsyncSession, ctx: DALContext, todo_id: str) -> None:
        await TodoService.get_todo_or_raise(db, ctx, todo_id)
        await db.execute(
            delete(Todo).where(Todo.id == todo_id, Todo.tenant_id == ctx.tenant_id)
        )
        logger.info("Todo deleted", todo_id=todo_id, tenant_id=ctx.tenant_id)
