"""
MediaItem model: denormalized mirror of one Google Photos media item.
Bytes live at the provider; base_url is a short-lived cache hint only.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, String, DateTime, Integer, ForeignKey, Float, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wedding_photos.database import Base, utcnow

if TYPE_CHECKING:
    from wedding_photos.models.user import User
    from wedding_photos.models.album import Album


class MediaItem(Base):
    """Photo or video metadata, upserted by provider_item_id."""

    __tablename__ = "media_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    provider_item_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    album_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("albums.id", ondelete="CASCADE"), index=True, nullable=False
    )

    filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media_type: Mapped[str] = mapped_column(String(16), default="other")

    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    creation_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)

    # Photo only
    camera_make: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    camera_model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    focal_length: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    aperture_f_number: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    iso_equivalent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    exposure_time: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Video only
    fps: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    processing_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    contributor_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    owner: Mapped["User"] = relationship("User", back_populates="media_items")
    album: Mapped["Album"] = relationship("Album", back_populates="media_items")

    def __repr__(self) -> str:
        return f"<MediaItem(id={self.id}, provider_item_id={self.provider_item_id})>"
