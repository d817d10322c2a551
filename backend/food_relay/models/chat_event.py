"""
Pydantic models for inbound chat platform events.

The chat platform sends loosely-shaped JSON: the attachment list may sit at
the top level or inside the message object, and the user/bot/chat blocks are
all optional. These models accept any of those shapes and ignore unknown
fields; the attachment resolver decides which image (if any) to use.

A side block of the wrong shape (``user: null``, a numeric ``chat.id``, a
string where an object was expected) is normalised here instead of failing
validation, so it can never hide an attachment that is present.
"""

from typing import Any, Optional

from pydantic import BaseModel, field_validator


def _as_text(v: Any) -> Any:
    """Scalars become strings; null stays null; anything else is dropped."""
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    return None


def _as_block(v: Any) -> Any:
    """Keep objects, drop every other shape."""
    if isinstance(v, (dict, BaseModel)):
        return v
    return None


class EventUser(BaseModel):
    """Requester identity. Both fields are optional on the wire."""
    model_config = {"extra": "ignore", "frozen": True}

    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _as_text(v)


class EventBot(BaseModel):
    """Bot block carrying the callback token and the bot's unique name."""
    model_config = {"extra": "ignore", "frozen": True}

    name: Optional[str] = None
    token: Optional[str] = None
    unique_name: Optional[str] = None

    @field_validator("name", "token", "unique_name", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _as_text(v)


class EventChat(BaseModel):
    """Chat block; the id is an alternative callback channel identifier."""
    model_config = {"extra": "ignore", "frozen": True}

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _as_text(v)


class InboundEvent(BaseModel):
    """
    A single webhook delivery from the chat platform.

    message is either plain text or an object that may itself carry
    an ``attachments`` list. Attachment entries are kept raw because their
    URL field name varies between payload shapes; the resolver skips entries
    that are not objects.
    """
    model_config = {"extra": "ignore", "frozen": True}

    message: Any = None
    user: Optional[EventUser] = None
    bot: Optional[EventBot] = None
    chat: Optional[EventChat] = None
    attachments: Optional[list[Any]] = None

    @field_validator("user", "bot", "chat", mode="before")
    @classmethod
    def drop_malformed_blocks(cls, v: Any) -> Any:
        return _as_block(v)

    @field_validator("attachments", mode="before")
    @classmethod
    def drop_non_list_attachments(cls, v: Any) -> Any:
        return v if isinstance(v, list) else None

    @property
    def requester(self) -> EventUser:
        """The user block, or an empty one when the event carried none."""
        return self.user or EventUser()


class AnalyzeUrlRequest(BaseModel):
    """Body of POST /analyze-url, a direct pass-through for non-chat callers."""
    model_config = {"extra": "ignore"}

    imageUrl: Optional[str] = None
    imageBase64: Optional[str] = None
    userName: Optional[str] = None
    userEmail: Optional[str] = None
