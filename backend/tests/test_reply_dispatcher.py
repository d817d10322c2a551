"""
Reply dispatcher tests.

Coverage:
  - resolve_callback_target: bot unique_name, chat id fallback, token required
  - post_callback: Authorization header and JSON body
  - deliver_reply: no-op without target, never raises on delivery failure
"""

import json
import logging

import httpx
import pytest

from food_relay.config import RelaySettings
from food_relay.models.chat_event import InboundEvent
from food_relay.models.reply import ReplyMessage
from food_relay.services.reply_dispatcher import (
    CallbackTarget,
    DispatchFailed,
    deliver_reply,
    post_callback,
    resolve_callback_target,
)

SETTINGS = RelaySettings(callback_base_url="https://cliq.test/api/v2")


def _event(**fields) -> InboundEvent:
    return InboundEvent.model_validate(fields)


# ===========================================================================
# resolve_callback_target
# ===========================================================================

class TestResolveCallbackTarget:

    def test_bot_unique_name_target(self):
        target = resolve_callback_target(
            _event(bot={"token": "tok-123", "unique_name": "caloriescanner"}), SETTINGS
        )
        assert target.url == "https://cliq.test/api/v2/bots/caloriescanner/message"
        assert target.authorization == "Zoho-oauthtoken tok-123"

    def test_chat_id_fallback(self):
        target = resolve_callback_target(
            _event(bot={"token": "tok-123"}, chat={"id": "CT_1234"}), SETTINGS
        )
        assert target.url == "https://cliq.test/api/v2/chats/CT_1234/message"

    def test_numeric_chat_id(self):
        target = resolve_callback_target(_event(bot={"token": "tok-123"}, chat={"id": 12345}), SETTINGS)
        assert target.url == "https://cliq.test/api/v2/chats/12345/message"

    def test_unique_name_wins_over_chat_id(self):
        target = resolve_callback_target(
            _event(bot={"token": "t", "unique_name": "bot"}, chat={"id": "CT_1"}), SETTINGS
        )
        assert "/bots/bot/" in target.url

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"bot": {"unique_name": "caloriescanner"}},
            {"bot": {"token": "   ", "unique_name": "caloriescanner"}},
            {"bot": {"token": "tok-123"}},
        ],
    )
    def test_no_target_without_token_and_identifier(self, fields):
        assert resolve_callback_target(_event(**fields), SETTINGS) is None

    def test_auth_scheme_comes_from_settings(self):
        settings = RelaySettings(callback_auth_scheme="Bearer")
        target = resolve_callback_target(_event(bot={"token": "t", "unique_name": "b"}), settings)
        assert target.authorization == "Bearer t"


# ===========================================================================
# post_callback / deliver_reply
# ===========================================================================

TARGET = CallbackTarget(url="https://cliq.test/api/v2/bots/b/message", token="tok-123")
REPLY = ReplyMessage(text="🍽️ **Food Analysis Complete!**")


class TestDelivery:

    @pytest.mark.asyncio
    async def test_post_callback_sends_auth_header_and_body(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        await post_callback(REPLY, TARGET, transport=httpx.MockTransport(handler))

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == TARGET.url
        assert request.headers["Authorization"] == "Zoho-oauthtoken tok-123"
        assert json.loads(request.content) == {"text": "🍽️ **Food Analysis Complete!**"}

    @pytest.mark.asyncio
    async def test_post_callback_raises_on_rejection(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(401, text="bad token"))
        with pytest.raises(DispatchFailed) as exc_info:
            await post_callback(REPLY, TARGET, transport=transport)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_deliver_reply_returns_true_on_success(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(204))
        assert await deliver_reply(REPLY, TARGET, transport=transport) is True

    @pytest.mark.asyncio
    async def test_deliver_reply_swallows_http_errors(self, caplog):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, text="down"))
        with caplog.at_level(logging.ERROR):
            assert await deliver_reply(REPLY, TARGET, transport=transport) is False
        assert "Failed to deliver reply" in caplog.text

    @pytest.mark.asyncio
    async def test_deliver_reply_swallows_transport_errors(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        assert await deliver_reply(REPLY, TARGET, transport=httpx.MockTransport(handler)) is False

    @pytest.mark.asyncio
    async def test_deliver_reply_swallows_invalid_callback_url(self, caplog):
        target = CallbackTarget(url="https://cliq.test:notaport/bots/b/message", token="tok-123")
        transport = httpx.MockTransport(lambda r: httpx.Response(200))
        with caplog.at_level(logging.ERROR):
            assert await deliver_reply(REPLY, target, transport=transport) is False
        assert "Failed to deliver reply" in caplog.text

    @pytest.mark.asyncio
    async def test_deliver_reply_without_target_is_logged_noop(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert await deliver_reply(REPLY, None) is False
        assert "No callback target" in caplog.text
