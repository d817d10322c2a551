"""
Webhook relay router.

Receives chat platform events (or direct calls), resolves the image, asks the
analysis service for a nutrition breakdown and relays the formatted reply.

Every endpoint answers 200 with a text body. The chat platform has no other
way to show an error to the end user. Analysis failures become explanatory
text; they are never raised to the caller.

Endpoints:
  POST /webhook        - chat platform event (JSON); replies inline or via callback
  POST /webhook-file   - multipart upload: file + userName + userEmail
  POST /analyze-url    - {imageUrl | imageBase64, userName, userEmail} pass-through
"""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from food_relay.config import RelaySettings
from food_relay.models.analysis import ImageReference
from food_relay.models.chat_event import AnalyzeUrlRequest, InboundEvent
from food_relay.models.reply import ReplyMessage
from food_relay.services.analysis_client import AnalysisClient, AnalysisError
from food_relay.services.attachment_resolver import (
    first_attachment,
    resolve_attachment_url,
    resolve_direct_image,
    resolve_upload,
)
from food_relay.services.reply_dispatcher import (
    CallbackTarget,
    deliver_reply,
    resolve_callback_target,
)
from food_relay.services.reply_formatter import (
    ANALYZING_TEXT,
    MISSING_IMAGE_URL_TEXT,
    NO_IMAGE_TEXT,
    failure_reply,
    format_reply,
    text_reply,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> RelaySettings:
    return request.app.state.settings


def get_analysis_client(settings: RelaySettings = Depends(get_settings)) -> AnalysisClient:
    return AnalysisClient(
        endpoint=settings.analysis_endpoint,
        timeout=settings.request_timeout,
        image_transfer=settings.image_transfer,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _analyze_to_reply(
    client: AnalysisClient,
    image: ImageReference,
    user_name: Optional[str],
    user_email: Optional[str],
    include_card: bool = False,
    bot_name: Optional[str] = None,
) -> ReplyMessage:
    """Run one analysis and turn the outcome into a reply, whether it succeeded or failed."""
    try:
        result = await client.analyze(image, user_name=user_name, user_email=user_email)
    except AnalysisError as e:
        logger.error(f"Analysis failed ({type(e).__name__}): {e.describe()}")
        return failure_reply(e, bot_name=bot_name)

    return format_reply(result, include_card=include_card, bot_name=bot_name)


async def _analyze_and_deliver(
    client: AnalysisClient,
    image: ImageReference,
    user_name: Optional[str],
    user_email: Optional[str],
    target: CallbackTarget,
    settings: RelaySettings,
) -> None:
    """Background task: analyse, then push the reply through the callback channel."""
    reply = await _analyze_to_reply(
        client,
        image,
        user_name,
        user_email,
        include_card=True,
        bot_name=settings.bot_name,
    )
    await deliver_reply(reply, target, timeout=settings.request_timeout)


def _parse_event(payload: Any) -> Optional[InboundEvent]:
    if not isinstance(payload, dict):
        logger.warning(f"Webhook body is not a JSON object: {type(payload).__name__}")
        return None
    try:
        return InboundEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Webhook payload did not match the event shape: {e}")
        return None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/webhook")
async def receive_chat_webhook(
    background_tasks: BackgroundTasks,
    payload: Any = Body(None),
    settings: RelaySettings = Depends(get_settings),
    client: AnalysisClient = Depends(get_analysis_client),
) -> dict:
    """
    Chat platform webhook.

    When the event carries a bot token and a bot/chat identifier, the
    platform gets an immediate "analyzing" acknowledgement and the result
    follows through the callback channel. Otherwise the analysis runs inline
    and the result (text + card) is the response body. A body that is not a
    JSON object is answered with the upload prompt.
    """
    logger.info(f"Received webhook: {json.dumps(payload, default=str)[:2000]}")

    event = _parse_event(payload)
    attachment = first_attachment(event) if event else None
    if attachment is None:
        return text_reply(NO_IMAGE_TEXT, bot_name=settings.bot_name).to_body()

    image = resolve_attachment_url(attachment)
    if image is None:
        logger.warning(f"Attachment has no usable URL field: keys={sorted(attachment)}")
        return text_reply(MISSING_IMAGE_URL_TEXT, bot_name=settings.bot_name).to_body()

    target = resolve_callback_target(event, settings)
    if target is not None:
        background_tasks.add_task(
            _analyze_and_deliver,
            client,
            image,
            event.requester.name,
            event.requester.email,
            target,
            settings,
        )
        return text_reply(ANALYZING_TEXT, bot_name=settings.bot_name).to_body()

    reply = await _analyze_to_reply(
        client,
        image,
        event.requester.name,
        event.requester.email,
        include_card=True,
        bot_name=settings.bot_name,
    )
    return reply.to_body()


@router.post("/webhook-file")
async def receive_file_webhook(
    file: Optional[UploadFile] = File(None),
    userName: Optional[str] = Form(None),
    userEmail: Optional[str] = Form(None),
    settings: RelaySettings = Depends(get_settings),
    client: AnalysisClient = Depends(get_analysis_client),
) -> dict:
    """
    Multipart upload. The file is spooled to a temp file, base64-encoded and
    the temp file removed before the analysis call is made. The spooling runs
    in the threadpool, off the event loop.
    """
    logger.info(
        f"File webhook received: filename={getattr(file, 'filename', None)!r}, "
        f"user={userName!r}"
    )

    image = await run_in_threadpool(resolve_upload, file, settings.upload_tmp_dir)
    if image is None:
        return text_reply(NO_IMAGE_TEXT).to_body()

    reply = await _analyze_to_reply(client, image, userName, userEmail)
    return reply.to_body()


@router.post("/analyze-url")
async def analyze_url(
    body: AnalyzeUrlRequest,
    client: AnalysisClient = Depends(get_analysis_client),
) -> dict:
    """Direct pass-through that bypasses chat-platform payload parsing."""
    image = resolve_direct_image(body.imageUrl, body.imageBase64)
    if image is None:
        return text_reply(NO_IMAGE_TEXT).to_body()

    reply = await _analyze_to_reply(client, image, body.userName, body.userEmail)
    return reply.to_body()
