"""
Album model: local mirror of a Google Photos album created by this app.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, DateTime, Integer, ForeignKey, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wedding_photos.database import Base, utcnow

if TYPE_CHECKING:
    from wedding_photos.models.user import User
    from wedding_photos.models.media_item import MediaItem


class Album(Base):
    """
    One app-managed album per user.

    The unique constraint on owner_id is what makes concurrent get-or-create
    safe: a losing insert fails and the caller adopts the existing row.
    """

    __tablename__ = "albums"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    provider_album_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    is_writeable: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by_app: Mapped[bool] = mapped_column(Boolean, default=True)

    # Refreshed opportunistically by mirror sync
    media_items_count: Mapped[int] = mapped_column(Integer, default=0)
    cover_photo_base_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    owner: Mapped["User"] = relationship("User", back_populates="album")
    media_items: Mapped[List["MediaItem"]] = relationship(
        "MediaItem", back_populates="album", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Album(id={self.id}, provider_album_id={self.provider_album_id})>"
