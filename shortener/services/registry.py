import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..exceptions import (
    ExhaustedError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from ..expiration import (
    MAX_EXPIRATION_MS,
    compute_expiry_timestamp,
    format_duration,
    is_valid_expiration,
    utc_now,
)
from ..models import Link
from ..utils import generate_delete_token, generate_short_code

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048
MAX_CODE_ATTEMPTS = 10
# Root path segments served by fixed routes; a code equal to one could never redirect.
RESERVED_CODES = frozenset({"urls", "stats", "health", "metrics", "docs", "redoc"})

_url_adapter = TypeAdapter(AnyUrl)


@dataclass
class LinkInfo:
    link: Link
    is_expired: bool
    time_until_expiration: Optional[str]


@dataclass
class LinkStats:
    total: int
    active: int
    expired: int
    total_clicks: int


def validate_original_url(original_url: Optional[str]) -> str:
    if original_url is None or not original_url.strip():
        raise ValidationError("originalUrl is required")
    original_url = original_url.strip()
    if len(original_url) > MAX_URL_LENGTH:
        raise ValidationError(f"originalUrl must be at most {MAX_URL_LENGTH} characters")
    try:
        parsed = _url_adapter.validate_python(original_url)
    except PydanticValidationError:
        raise ValidationError("originalUrl must be an absolute URL")
    if not parsed.host:
        raise ValidationError("originalUrl must be an absolute URL")
    return original_url


def validate_expire_in(expire_in_ms: Optional[int]) -> None:
    if not is_valid_expiration(expire_in_ms):
        max_expiration = format_duration(timedelta(milliseconds=MAX_EXPIRATION_MS))
        raise ValidationError(
            f"Invalid expiration time. It must be between 1 second and {max_expiration}"
        )


class LinkRegistry:
    def __init__(self, db: AsyncSession, max_code_attempts: int = MAX_CODE_ATTEMPTS):
        self.db = db
        self.max_code_attempts = max_code_attempts

    async def create(self, original_url: Optional[str], expire_in_ms: Optional[int] = None) -> Link:
        original_url = validate_original_url(original_url)
        validate_expire_in(expire_in_ms)

        for attempt in range(1, self.max_code_attempts + 1):
            short_code = generate_short_code()
            if short_code in RESERVED_CODES or await self._guard(
                crud.short_code_exists(self.db, short_code)
            ):
                logger.debug(f"Short code collision on attempt {attempt}: {short_code}")
                continue

            now = utc_now()
            link = Link(
                original_url=original_url,
                short_code=short_code,
                delete_token=generate_delete_token(),
                created_at=now,
                expires_at=compute_expiry_timestamp(expire_in_ms, now) if expire_in_ms is not None else None,
                clicks=0,
            )
            try:
                created = await crud.create_link(self.db, link)
            except IntegrityError:
                # Another request stored the same code between check and insert.
                await self.db.rollback()
                logger.warning(f"Short code {short_code} taken concurrently, retrying")
                continue
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.exception("Storage error while creating link")
                raise StorageError() from e

            logger.info(
                f"Short link created: {created.short_code} -> {created.original_url} "
                f"(expires: {created.expires_at_utc.isoformat() if created.expires_at else 'never'})",
                extra={"short_code": created.short_code},
            )
            return created

        logger.error(f"No unique short code after {self.max_code_attempts} attempts")
        raise ExhaustedError()

    async def resolve(self, short_code: str) -> Link:
        now = utc_now()
        link = await self._guard(crud.increment_click_count(self.db, short_code, now))
        if link is not None:
            logger.info(
                f"Redirect: {link.short_code} -> {link.original_url} (click #{link.clicks})",
                extra={"short_code": short_code},
            )
            return link

        # Nothing was counted; tell a missing code apart from an expired one.
        existing = await self._guard(crud.get_link_by_short_code(self.db, short_code))
        if existing is None:
            logger.warning(f"Redirect to unknown short code: {short_code}", extra={"short_code": short_code})
            raise NotFoundError()
        logger.warning(f"Redirect to expired short code: {short_code}", extra={"short_code": short_code})
        raise ExpiredError()

    async def list_links(self, active_only: bool = True) -> List[Link]:
        return await self._guard(crud.list_links(self.db, utc_now(), active_only=active_only))

    async def delete(self, short_code: str, delete_token: str) -> None:
        link = await self._guard(crud.get_link_by_short_code(self.db, short_code))
        if link is None:
            logger.warning(f"Delete of unknown short code: {short_code}", extra={"short_code": short_code})
            raise NotFoundError()

        if not secrets.compare_digest(link.delete_token.encode(), delete_token.encode()):
            logger.warning(f"Delete with invalid token: {short_code}", extra={"short_code": short_code})
            raise ForbiddenError()

        if not await self._guard(crud.delete_link_by_id(self.db, link.id)):
            # Swept or deleted by someone else since the lookup.
            raise NotFoundError()
        logger.info(f"Short link deleted: {short_code}", extra={"short_code": short_code})

    async def info(self, short_code: str) -> LinkInfo:
        link = await self._guard(crud.get_link_by_short_code(self.db, short_code))
        if link is None:
            raise NotFoundError()

        now = utc_now()
        expired = link.is_expired(now)
        remaining = None
        if link.expires_at is not None and not expired:
            remaining = format_duration(link.expires_at_utc - now)
        return LinkInfo(link=link, is_expired=expired, time_until_expiration=remaining)

    async def stats(self) -> LinkStats:
        total, active, clicks = await self._guard(crud.get_link_counts(self.db, utc_now()))
        return LinkStats(total=total, active=active, expired=total - active, total_clicks=clicks)

    async def _guard(self, awaitable):
        try:
            return await awaitable
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Storage error")
            raise StorageError() from e
