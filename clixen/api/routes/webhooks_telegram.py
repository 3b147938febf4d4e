"""
Telegram webhook endpoint.

Always acknowledges with 200 once the request is authenticated: Telegram
backs off (and eventually drops) webhooks that keep failing, and the
reply to the user has already been sent through the Bot API.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from clixen.api.schemas.telegram import TelegramUpdate
from clixen.database.session import get_db_session
from clixen.platform.errors import AuthenticationError
from clixen.services.message_router import MessageRouter
from clixen.services.profile_store import ProfileStore
from clixen.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def build_message_router(request: Request, db: Session) -> MessageRouter:
    services = request.app.state.services
    return MessageRouter(
        store=ProfileStore(db),
        usage=UsageRecorder(db),
        classifier=services.classifier,
        executor=services.executor,
        telegram=services.telegram,
        settings=services.settings,
    )


@router.post("/telegram")
async def handle_telegram_webhook(
    request: Request,
    secret_token: Optional[str] = Header(None, alias="X-Telegram-Bot-Api-Secret-Token"),
    db: Session = Depends(get_db_session),
):
    """Route one chat update; the response body carries nothing meaningful."""
    expected = request.app.state.services.settings.telegram_webhook_secret
    if expected and not hmac.compare_digest(
        (secret_token or "").encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Telegram webhook secret mismatch")
        raise AuthenticationError("Invalid webhook secret")

    try:
        update = TelegramUpdate.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as e:
        logger.warning("Unparseable Telegram update ignored", extra={"error_type": type(e).__name__})
        return {"ok": True}

    try:
        await build_message_router(request, db).route(update)
    except Exception:
        logger.exception("Message routing failed", extra={"update_id": update.update_id})

    return {"ok": True}
