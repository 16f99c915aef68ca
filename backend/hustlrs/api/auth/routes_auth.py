"""Authentication routes."""
import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.api.deps import get_current_user, get_db
from hustlrs.api.envelope import ok
from hustlrs.domain.accounts.models import UserType
from hustlrs.infra.db.models.user import UserModel
from hustlrs.services.account_service import AccountService
from hustlrs.services.serializers import user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


class RegisterRequest(BaseModel):
    email: EmailStr
    phone_number: str = Field(min_length=7, max_length=20)
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    user_type: UserType = UserType.CUSTOMER


class VerifyRequest(BaseModel):
    identifier: str
    code: str = Field(min_length=4, max_length=10)


class IdentifierRequest(BaseModel):
    identifier: str


class LoginRequest(BaseModel):
    """identifier is an email address or a phone number."""
    identifier: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Start registration: store the pending account and send a verification code."""
    result = await AccountService(db).register(request.model_dump())
    return ok(result, message="Verification code sent")


@router.post("/verify")
async def verify(request: VerifyRequest, db: AsyncSession = Depends(get_db)):
    """Complete registration with the emailed code."""
    tokens = await AccountService(db).verify_registration(request.identifier, request.code)
    return ok(tokens, message="Account verified")


@router.post("/resend-code")
async def resend_code(request: IdentifierRequest, db: AsyncSession = Depends(get_db)):
    result = await AccountService(db).resend_code(request.identifier)
    return ok(result, message="Verification code sent")


@router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Log in. Long-inactive accounts get requires_otp instead of tokens."""
    result = await AccountService(db).login(request.identifier, request.password)
    if result.get("requires_otp"):
        return ok(result, message="Verification code sent to your email")
    return ok(result, message="Login successful")


@router.post("/verify-inactivity")
async def verify_inactivity(request: VerifyRequest, db: AsyncSession = Depends(get_db)):
    tokens = await AccountService(db).verify_inactivity(request.identifier, request.code)
    return ok(tokens, message="Login successful")


@router.post("/refresh")
async def refresh(request: RefreshRequest, db: AsyncSession = Depends(get_db)):
    tokens = await AccountService(db).refresh(request.refresh_token)
    return ok(tokens)


@router.get("/me")
async def me(current_user: UserModel = Depends(get_current_user)):
    return ok(user_to_dict(current_user, private=True))
