"""User database model."""
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Float, Integer, String, Text

from hustlrs.domain.accounts.models import UserType
from hustlrs.infra.db.base import Base, JSONType


class UserModel(Base):
    """Marketplace user (customer, hustler or both)."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
    phone_number = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    avatar_url = Column(String, nullable=True)
    user_type = Column(String, nullable=False, default=UserType.CUSTOMER.value)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    last_activity_at = Column(DateTime, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    country = Column(String, nullable=False, default="Nigeria")

    bio = Column(Text, nullable=True)
    skills = Column(JSONType, nullable=True)  # list of strings

    # rating = sum of review stars, total_rating = number of reviews
    rating = Column(Integer, default=0, nullable=False)
    total_rating = Column(Integer, default=0, nullable=False)
    tasks_completed = Column(Integer, default=0, nullable=False)
    tasks_posted = Column(Integer, default=0, nullable=False)
    total_earnings = Column(BigInteger, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def average_rating(self) -> float:
        if not self.total_rating:
            return 0.0
        return round(self.rating / self.total_rating, 2)
