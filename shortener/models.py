import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, BigInteger, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from .database import Base
from .expiration import utc_now, ensure_utc, is_expired

class Link(Base):
    __tablename__ = "short_links"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    original_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    short_code: Mapped[str] = mapped_column(String(10), unique=True, index=True, nullable=False)
    delete_token: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True, nullable=True)
    clicks: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return is_expired(self.expires_at, now)

    @property
    def expires_at_utc(self) -> Optional[datetime]:
        return ensure_utc(self.expires_at)

    @property
    def created_at_utc(self) -> datetime:
        return ensure_utc(self.created_at)
