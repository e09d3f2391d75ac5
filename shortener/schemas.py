from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
import uuid

from .models import Link


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LinkCreate(CamelModel):
    original_url: str
    # Lifetime in milliseconds; omitted means the link never expires.
    expire_in: Optional[int] = None


class DeleteLinkRequest(CamelModel):
    delete_token: Optional[str] = None


class LinkPublic(CamelModel):
    """Public view of a link: safe to list and inspect, never carries the delete token."""

    id: uuid.UUID
    original_url: str
    short_code: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    clicks: int
    short_url: str

    @classmethod
    def from_link(cls, link: Link, base_url: str, **extra):
        return cls(
            id=link.id,
            original_url=link.original_url,
            short_code=link.short_code,
            created_at=link.created_at_utc,
            expires_at=link.expires_at_utc,
            clicks=link.clicks,
            short_url=f"{base_url.rstrip('/')}/{link.short_code}",
            **extra,
        )


class LinkCreated(LinkPublic):
    """Creation view: the only response that ever includes the delete token."""

    delete_token: str

    @classmethod
    def from_link(cls, link: Link, base_url: str, **extra):
        return super().from_link(link, base_url, delete_token=link.delete_token, **extra)


class LinkStatus(CamelModel):
    is_expired: bool
    time_until_expiration: Optional[str] = None


class LinkInfoResponse(CamelModel):
    url: LinkPublic
    status: LinkStatus


class StatsResponse(CamelModel):
    total_urls: int
    active_urls: int
    expired_urls: int
    total_clicks: int
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str
    detail: str = Field(..., description="Short human-readable explanation")
