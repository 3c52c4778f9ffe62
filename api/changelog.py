"""Public changelog."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.deps import get_store
from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from services.chat_store import ChatStore
from services.i18n import resolve_locale

router = APIRouter(prefix="/api/changelog", tags=["changelog"])


@router.get("")
async def list_changelog(
    request: Request,
    locale: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    store: ChatStore = Depends(get_store)
):
    """Changelog entries, newest first, with heading/paragraph in one locale."""
    locale = resolve_locale(locale, request.headers.get("accept-language"))
    entries = await store.list_changelog(limit)
    return [
        {
            "id": entry["id"],
            "published_date": entry["published_date"],
            "image_url": entry["image_url"],
            "heading": entry[f"heading_{locale}"],
            "paragraph": entry[f"paragraph_{locale}"],
            "locale": locale,
        }
        for entry in entries
    ]
