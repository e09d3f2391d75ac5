from fastapi import APIRouter, Body, Depends, Header, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ..database import get_db
from ..exceptions import ValidationError
from ..observability import LINKS_CREATED_TOTAL, LINKS_DELETED_TOTAL
from ..schemas import (
    DeleteLinkRequest,
    ErrorResponse,
    LinkCreate,
    LinkCreated,
    LinkInfoResponse,
    LinkPublic,
    LinkStatus,
)
from ..services.registry import LinkRegistry
from ..config import settings

router = APIRouter(tags=["URLs"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def get_registry(db: AsyncSession = Depends(get_db)) -> LinkRegistry:
    return LinkRegistry(db)


def public_base_url(request: Request) -> str:
    return settings.BASE_URL or str(request.base_url)


@router.post(
    "/urls",
    response_model=LinkCreated,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create a short URL",
)
async def create_short_url(
    link_in: LinkCreate,
    request: Request,
    response: Response,
    registry: LinkRegistry = Depends(get_registry),
):
    link = await registry.create(link_in.original_url, link_in.expire_in)
    LINKS_CREATED_TOTAL.inc()
    response.headers["Location"] = f"/urls/{link.short_code}/info"
    return LinkCreated.from_link(link, public_base_url(request))


@router.get("/urls", response_model=List[LinkPublic], summary="List short URLs")
async def list_short_urls(
    request: Request,
    include_expired: bool = Query(False, alias="includeExpired"),
    registry: LinkRegistry = Depends(get_registry),
):
    base_url = public_base_url(request)
    links = await registry.list_links(active_only=not include_expired)
    return [LinkPublic.from_link(link, base_url) for link in links]


@router.delete(
    "/urls/{short_code}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**ERROR_RESPONSES, 403: {"model": ErrorResponse}},
    summary="Delete a short URL",
)
async def delete_short_url(
    short_code: str,
    x_delete_token: Optional[str] = Header(None, alias="X-Delete-Token"),
    body: Optional[DeleteLinkRequest] = Body(None),
    registry: LinkRegistry = Depends(get_registry),
):
    delete_token = x_delete_token or (body.delete_token if body else None)
    if not delete_token:
        raise ValidationError(
            "Delete token is required. Send it in the 'X-Delete-Token' header or as 'deleteToken' in the body."
        )

    await registry.delete(short_code, delete_token)
    LINKS_DELETED_TOTAL.inc()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/urls/{short_code}/info",
    response_model=LinkInfoResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get URL details without redirecting",
)
async def get_short_url_info(
    short_code: str,
    request: Request,
    registry: LinkRegistry = Depends(get_registry),
):
    info = await registry.info(short_code)
    return LinkInfoResponse(
        url=LinkPublic.from_link(info.link, public_base_url(request)),
        status=LinkStatus(
            is_expired=info.is_expired,
            time_until_expiration=info.time_until_expiration,
        ),
    )
