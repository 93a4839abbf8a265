from __future__ import annotations

from datetime import datetime
from sqlalchemy import Boolean, String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from mindwell.db.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # uid from the external identity provider; the app only mirrors it
    external_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    is_guest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    mood_entries: Mapped[list["MoodEntry"]] = relationship(
        "MoodEntry", back_populates="user", cascade="all, delete-orphan"
    )
    interventions: Mapped[list["Intervention"]] = relationship(
        "Intervention", back_populates="user", cascade="all, delete-orphan"
    )
    community_posts: Mapped[list["CommunityPost"]] = relationship(
        "CommunityPost", back_populates="user", cascade="all, delete-orphan"
    )
    post_comments: Mapped[list["PostComment"]] = relationship(
        "PostComment", back_populates="user", cascade="all, delete-orphan"
    )
    progress: Mapped["UserProgress | None"] = relationship(
        "UserProgress", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
