from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MenuCacheEntry(Base):
    """A serialized menu result for one (url, date) pair."""

    __tablename__ = "menu_cache"
    __table_args__ = (
        UniqueConstraint("url", "date", name="uq_menu_cache_url_date"),
        Index("idx_menu_cache_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Source URL after fragment removal
    url: Mapped[str] = mapped_column(String(2048), nullable=False)

    # Target date, YYYY-MM-DD
    date: Mapped[str] = mapped_column(String(10), nullable=False)

    # MenuResult as JSON
    data: Mapped[str] = mapped_column(Text, nullable=False)

    # Local wall-clock timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<MenuCacheEntry(url='{self.url}', date='{self.date}', expires_at={self.expires_at})>"
