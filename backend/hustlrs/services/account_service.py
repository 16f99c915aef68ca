"""Accounts: registration with emailed codes, login with inactivity OTP, tokens, profile.

Pending codes live in the verification_codes table (hashed, with expiry and
an attempt counter), so they survive restarts and work across instances.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hustlrs.domain.accounts.models import UserType, VerificationPurpose, parse_user_type
from hustlrs.domain.common.errors import (
    DuplicateEntry,
    Forbidden,
    InvalidState,
    NotFoundError,
    Unauthorized,
    UpstreamUnavailable,
    ValidationError,
)
from hustlrs.infra.db.models.user import UserModel
from hustlrs.infra.db.models.verification import VerificationCodeModel
from hustlrs.infra.db.repositories.device_repo import DeviceRepository
from hustlrs.infra.db.repositories.task_repo import TaskRepository
from hustlrs.infra.db.repositories.user_repo import UserRepository
from hustlrs.infra.db.repositories.verification_repo import VerificationCodeRepository
from hustlrs.infra.messaging.code_sender import CodeSender, get_code_sender
from hustlrs.infra.security.jwt import create_access_token, create_refresh_token, decode_token
from hustlrs.infra.security.password import get_password_hash, verify_password
from hustlrs.services.serializers import user_to_dict
from hustlrs.services.store import unit_of_work
from hustlrs.settings import settings

logger = logging.getLogger(__name__)

_CODE_HASH_ROUNDS = 6


def _new_code() -> str:
    length = settings.verification_code_length
    return str(secrets.randbelow(10 ** length)).zfill(length)


def issue_tokens(user: UserModel) -> dict[str, Any]:
    return {
        "access_token": create_access_token(data={"sub": user.id}),
        "refresh_token": create_refresh_token(data={"sub": user.id}),
        "token_type": "bearer",
        "user": user_to_dict(user, private=True),
    }


class AccountService:
    def __init__(self, session: AsyncSession, sender: Optional[CodeSender] = None):
        self.session = session
        self.users = UserRepository(session)
        self.codes = VerificationCodeRepository(session)
        self.devices = DeviceRepository(session)
        self.tasks = TaskRepository(session)
        self._sender = sender

    @property
    def sender(self) -> CodeSender:
        if self._sender is None:
            self._sender = get_code_sender()
        return self._sender

    # ---- Codes ----
    async def _issue_code(
        self,
        identifier: str,
        purpose: VerificationPurpose,
        email: str,
        ttl_minutes: int,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        code = _new_code()
        async with unit_of_work(self.session, "issue verification code"):
            await self.codes.replace(
                identifier,
                purpose.value,
                get_password_hash(code, rounds=_CODE_HASH_ROUNDS),
                datetime.utcnow() + timedelta(minutes=ttl_minutes),
                payload=payload,
            )
            await self.session.commit()
        try:
            await self.sender.send_code(email, code, purpose.value, ttl_minutes)
        except Exception as e:
            logger.error("Could not deliver %s code to %s: %s", purpose.value, email, e)
            raise UpstreamUnavailable("Could not send verification code, please retry") from e

    async def _consume_code(self, identifier: str, purpose: VerificationPurpose, code: str) -> VerificationCodeModel:
        """Check code; the row is deleted on success, expiry or exhausted attempts."""
        row = await self.codes.get(identifier, purpose.value)
        if row is None:
            raise ValidationError("No pending verification for this account")
        if datetime.utcnow() > row.expires_at or row.attempts >= settings.verification_max_attempts:
            async with unit_of_work(self.session, "expire verification code"):
                await self.codes.delete(identifier, purpose.value)
                await self.session.commit()
            raise ValidationError("Verification code has expired, request a new one")
        if not verify_password(code, row.code_hash):
            async with unit_of_work(self.session, "record failed verification"):
                await self.codes.record_failed_attempt(row.id)
                await self.session.commit()
            raise ValidationError("Invalid verification code")
        await self.codes.delete(identifier, purpose.value)
        return row

    # ---- Registration ----
    async def register(self, data: dict[str, Any]) -> dict[str, Any]:
        email = data["email"].strip().lower()
        phone = data["phone_number"].strip()
        try:
            user_type = parse_user_type(data.get("user_type") or UserType.CUSTOMER)
        except ValueError:
            raise ValidationError("Invalid user type")
        if len(data.get("password") or "") < 6:
            raise ValidationError("Password must be at least 6 characters")
        if await self.users.exists_with(email, phone):
            raise DuplicateEntry("A user with this email or phone number already exists")
        payload = {
            "email": email,
            "phone_number": phone,
            "first_name": data["first_name"].strip(),
            "last_name": data["last_name"].strip(),
            "user_type": user_type.value,
            "password_hash": get_password_hash(data["password"]),
        }
        ttl = settings.verification_code_ttl_minutes
        await self._issue_code(email, VerificationPurpose.REGISTRATION, email, ttl, payload=payload)
        logger.info("Registration pending for %s", email)
        return {"identifier": email, "expires_in_minutes": ttl}

    async def resend_code(self, identifier: str) -> dict[str, Any]:
        email = identifier.strip().lower()
        row = await self.codes.get(email, VerificationPurpose.REGISTRATION.value)
        if row is None:
            raise NotFoundError("Pending registration", email)
        ttl = settings.verification_code_ttl_minutes
        await self._issue_code(email, VerificationPurpose.REGISTRATION, email, ttl, payload=row.payload)
        return {"identifier": email, "expires_in_minutes": ttl}

    async def verify_registration(self, identifier: str, code: str) -> dict[str, Any]:
        email = identifier.strip().lower()
        async with unit_of_work(self.session, "complete registration"):
            row = await self._consume_code(email, VerificationPurpose.REGISTRATION, code)
            payload = dict(row.payload or {})
            if await self.users.exists_with(payload["email"], payload["phone_number"]):
                raise DuplicateEntry("A user with this email or phone number already exists")
            user = await self.users.create(is_verified=True, **payload)
            await self.session.commit()
        logger.info("User %s registered (%s)", user.id, user.user_type)
        return issue_tokens(user)

    # ---- Login ----
    async def login(self, identifier: str, password: str) -> dict[str, Any]:
        user = await self.users.get_by_identifier(identifier)
        if user is None or not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid credentials")
        if not user.is_active:
            raise Forbidden("Account is deactivated")
        cutoff = datetime.utcnow() - timedelta(days=settings.inactivity_otp_days)
        if user.last_activity_at is not None and user.last_activity_at < cutoff:
            await self._issue_code(
                user.id,
                VerificationPurpose.INACTIVITY,
                user.email,
                settings.inactivity_code_ttl_minutes,
            )
            logger.info("Inactivity OTP issued for user %s", user.id)
            return {"requires_otp": True, "identifier": identifier}
        async with unit_of_work(self.session, "login"):
            await self.users.touch_activity(user.id, login=True)
            await self.session.commit()
        return issue_tokens(user)

    async def verify_inactivity(self, identifier: str, code: str) -> dict[str, Any]:
        user = await self.users.get_by_identifier(identifier)
        if user is None:
            raise Unauthorized("Invalid credentials")
        async with unit_of_work(self.session, "verify inactivity code"):
            await self._consume_code(user.id, VerificationPurpose.INACTIVITY, code)
            await self.users.touch_activity(user.id, login=True)
            await self.session.commit()
        return issue_tokens(user)

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        payload = decode_token(refresh_token)
        if payload is None or payload.get("type") != "refresh" or not payload.get("sub"):
            raise Unauthorized("Invalid refresh token")
        user = await self.users.get_by_id(payload["sub"])
        if user is None or not user.is_active:
            raise Unauthorized("Invalid refresh token")
        return issue_tokens(user)

    # ---- Profile ----
    async def update_profile(self, user: UserModel, changes: dict[str, Any]) -> UserModel:
        if "user_type" in changes and changes["user_type"] is not None:
            try:
                changes["user_type"] = parse_user_type(changes["user_type"]).value
            except ValueError:
                raise ValidationError("Invalid user type")
        changes = {k: v for k, v in changes.items() if v is not None}
        async with unit_of_work(self.session, "update profile"):
            await self.users.update_profile(user, changes)
            await self.session.commit()
        return user

    async def get_public_profile(self, user_id: str) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def stats(user: UserModel) -> dict[str, Any]:
        return {
            "tasks_posted": user.tasks_posted,
            "tasks_completed": user.tasks_completed,
            "total_earnings": user.total_earnings,
            "average_rating": user.average_rating,
            "total_reviews": user.total_rating,
        }

    # ---- Devices ----
    async def register_device(self, user: UserModel, push_token: str, platform: str) -> None:
        async with unit_of_work(self.session, "register device"):
            await self.devices.upsert_by_token(user.id, push_token, platform)
            await self.session.commit()

    async def remove_device(self, user: UserModel, push_token: str) -> None:
        async with unit_of_work(self.session, "remove device"):
            if not await self.devices.delete_token(user.id, push_token):
                raise NotFoundError("Device", push_token)
            await self.session.commit()

    # ---- Account removal ----
    async def delete_account(self, user: UserModel) -> bool:
        """Remove the caller's account. True when the row was deleted, False when deactivated.

        Refused while any task the user posted or works on is not yet
        COMPLETED or CANCELLED. Users named on finished tasks are deactivated
        so those tasks keep their poster and hustler.
        """
        user_id = user.id
        if await self.tasks.count_active_for_user(user_id):
            raise InvalidState("Close your active tasks before deleting your account")
        async with unit_of_work(self.session, "delete account"):
            await self.devices.delete_all_for_user(user_id)
            deleted = await self.users.delete_if_unreferenced(user_id)
            if not deleted:
                await self.users.deactivate(user_id)
            await self.session.commit()
        logger.info("Account %s %s", user_id, "deleted" if deleted else "deactivated")
        return deleted
