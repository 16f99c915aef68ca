"""User profile routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_current_user, get_db
from hustlrs.api.envelope import ok
from hustlrs.domain.accounts.models import UserType
from hustlrs.infra.db.models.user import UserModel
from hustlrs.services.account_service import AccountService
from hustlrs.services.review_service import ReviewService
from hustlrs.services.serializers import review_to_dict, user_to_dict

router = APIRouter()


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    avatar_url: Optional[str] = None
    user_type: Optional[UserType] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    skills: Optional[list[str]] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


@router.get("/me")
async def get_profile(current_user: UserModel = Depends(get_current_user)):
    return ok(user_to_dict(current_user, private=True))


@router.put("/me")
async def update_profile(
    request: UpdateProfileRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await AccountService(db).update_profile(current_user, request.model_dump(exclude_unset=True))
    return ok(user_to_dict(user, private=True), message="Profile updated successfully")


@router.delete("/me")
async def delete_account(
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the account, or deactivate it when finished tasks still name the user."""
    deleted = await AccountService(db).delete_account(current_user)
    if deleted:
        return ok(message="Account deleted successfully")
    return ok(message="Account deactivated successfully")


@router.get("/me/stats")
async def get_stats(current_user: UserModel = Depends(get_current_user)):
    return ok(AccountService.stats(current_user))


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await AccountService(db).get_public_profile(user_id)
    return ok(user_to_dict(user))


@router.get("/{user_id}/reviews")
async def get_user_reviews(
    user_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await ReviewService(db).list_for_user(user_id, limit=limit, offset=(page - 1) * limit)
    return ok([review_to_dict(review, author) for review, author in rows])
