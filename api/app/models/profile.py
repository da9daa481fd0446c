"""Player and admin profiles.

A profile mirrors an identity-provider account: the id is the token subject.
"""

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class ProfileRole(enum.StrEnum):
    PLAYER = "player"
    ADMIN = "admin"


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    email: Mapped[str | None] = mapped_column(String(254))
    phone: Mapped[str | None] = mapped_column(String(50))
    role: Mapped[ProfileRole] = mapped_column(
        Enum(ProfileRole, name="profile_role", values_callable=lambda e: [x.value for x in e]),
        default=ProfileRole.PLAYER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Stripe customer (for card payments)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(100))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def __repr__(self) -> str:
        return f"<Profile {self.username}>"
