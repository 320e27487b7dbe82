"""
api/routes/users.py
-------------------
PATCH /user/profile — Update the authenticated user's display name.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from saaskit.db.session import get_db
from saaskit.dependencies import CurrentUser, get_current_user
from saaskit.schemas.user import ProfileUpdate, UserRead
from saaskit.services.user_service import UserService

router = APIRouter(prefix="/user", tags=["Users"])


@router.patch("/profile", response_model=UserRead, summary="Update your profile")
async def update_profile(
    body: ProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current: Annotated[CurrentUser, Depends(get_current_user)],
) -> UserRead:
    user = await UserService.update_profile(db, current.ctx, body.name)
    return UserRead.model_validate(user)
