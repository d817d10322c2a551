"""
Outbound reply models.

A ReplyMessage is built once per inbound event and sent once, either as the
webhook's HTTP response body or as the body of a platform callback.
"""

from typing import Optional

from pydantic import BaseModel


class CardElement(BaseModel):
    type: str = "text"
    text: str


class CardSection(BaseModel):
    id: int
    title: Optional[str] = None
    elements: list[CardElement] = []


class ReplyCard(BaseModel):
    """Rich card mirroring the text reply, for platforms that render cards."""
    title: str
    theme: str = "modern-inline"
    sections: list[CardSection] = []


class ReplyBot(BaseModel):
    name: str


class ReplyMessage(BaseModel):
    text: str
    card: Optional[ReplyCard] = None
    bot: Optional[ReplyBot] = None

    def to_body(self) -> dict:
        """JSON body for the platform; absent card/bot are omitted entirely."""
        return self.model_dump(exclude_none=True)
