"""
Paste routes.
Handles create, fetch (JSON and raw) and delete operations.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import PlainTextResponse

from wastebin.config import Settings
from wastebin.dependencies import get_lifecycle, get_settings, get_store, get_validator
from wastebin.lifecycle import LifecycleEvaluator
from wastebin.models import ErrorResponse, MessageResponse, PasteCreate, PasteResponse, PasteView
from wastebin.records import Paste
from wastebin.store import PasteStore
from wastebin.validation import ContentValidator

router = APIRouter()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _get_current_time(settings: Settings, x_test_now_ms: Optional[str] = None) -> datetime:
    """
    Get current time, respecting TEST_MODE for deterministic testing.

    Args:
        settings: Application settings
        x_test_now_ms: Test timestamp header (milliseconds since epoch)

    Returns:
        Current datetime in UTC
    """
    if settings.TEST_MODE and x_test_now_ms:
        try:
            timestamp_ms = int(x_test_now_ms)
            return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Invalid x-test-now-ms header: {e}")

    return datetime.now(timezone.utc)


def _to_view(paste: Paste) -> PasteView:
    return PasteView(**paste.as_dict())


@router.post(
    "/api/v1/paste",
    response_model=PasteResponse,
    status_code=201,
    responses={413: {"model": ErrorResponse}, **ERROR_RESPONSES},
)
def create_paste(
    paste: PasteCreate,
    x_test_now_ms: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    validator: ContentValidator = Depends(get_validator),
    store: PasteStore = Depends(get_store),
) -> PasteResponse:
    """
    Create a new paste.

    Returns:
        Paste ID and shareable URL

    Raises:
        InvalidInput: content, language or expiry rejected (400 / 413)
        StorageFailure: the paste could not be saved (500)
    """
    now = _get_current_time(settings, x_test_now_ms)
    stored = store.create(validator.validate(paste, now))

    base_url = settings.APP_DOMAIN.rstrip("/")
    return PasteResponse(id=str(stored.id), url=f"{base_url}/paste/{stored.id}")


@router.get("/api/v1/paste/{paste_id}", response_model=PasteView, responses=ERROR_RESPONSES)
def fetch_paste(
    paste_id: str,
    x_test_now_ms: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    lifecycle: LifecycleEvaluator = Depends(get_lifecycle),
) -> PasteView:
    """
    Fetch a paste as JSON.
    Expired pastes answer 410; burn-after-read pastes are deleted as they are served.
    """
    paste = lifecycle.read(paste_id, _get_current_time(settings, x_test_now_ms))
    return _to_view(paste)


@router.get("/paste/{paste_id}/raw", response_class=PlainTextResponse, responses=ERROR_RESPONSES)
def fetch_raw_paste(
    paste_id: str,
    x_test_now_ms: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    lifecycle: LifecycleEvaluator = Depends(get_lifecycle),
) -> PlainTextResponse:
    """Fetch a paste's content as plain text."""
    paste = lifecycle.read(paste_id, _get_current_time(settings, x_test_now_ms))
    return PlainTextResponse(
        paste.content,
        media_type="text/plain; charset=utf-8",
        headers={"X-Content-Type-Options": "nosniff"},
    )


@router.delete("/api/v1/paste/{paste_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
def delete_paste(
    paste_id: str,
    store: PasteStore = Depends(get_store),
) -> MessageResponse:
    """Delete a paste regardless of its state."""
    store.delete_by_id(paste_id)
    return MessageResponse(message="Paste deleted successfully")
