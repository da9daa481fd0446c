"""Profile routes: the caller's own profile and player search for invitations."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import get_current_user
from app.models.profile import Profile, ProfileRole
from app.schemas import ProfileOut, ProfileSummary, ProfileUpdate

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileOut)
async def get_me(user: Profile = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=ProfileOut)
async def update_me(
    body: ProfileUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    await db.flush()
    return user


@router.get("/search", response_model=list[ProfileSummary])
async def search_players(
    q: str = Query(min_length=2),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active players matching username or name, excluding the caller."""
    pattern = f"%{q.strip()}%"
    result = await db.execute(
        select(Profile)
        .where(
            Profile.is_active.is_(True),
            Profile.role == ProfileRole.PLAYER,
            Profile.id != user.id,
            or_(
                Profile.username.ilike(pattern),
                Profile.first_name.ilike(pattern),
                Profile.last_name.ilike(pattern),
            ),
        )
        .order_by(Profile.username)
        .limit(20)
    )
    return result.scalars().all()
