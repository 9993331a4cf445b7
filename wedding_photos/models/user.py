"""
User model for passwordless sign-in.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wedding_photos.database import Base, utcnow

if TYPE_CHECKING:
    from wedding_photos.models.album import Album
    from wedding_photos.models.media_item import MediaItem


class User(Base):
    """A guest or couple member who signs in with an emailed link."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Magic links issued before this instant are no longer accepted
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    album: Mapped[Optional["Album"]] = relationship(
        "Album", back_populates="owner", uselist=False
    )
    media_items: Mapped[List["MediaItem"]] = relationship(
        "MediaItem", back_populates="owner", cascade="all, delete-orphan"
    )

    @property
    def label(self) -> str:
        """Name used in album titles."""
        return self.display_name or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id})>"
