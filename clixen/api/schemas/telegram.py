"""
Pydantic schemas for inbound Telegram webhook updates.

Only the fields the router reads are modelled; everything else in the
update is ignored.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int
    type: str = "private"


class TelegramDocument(BaseModel):
    """Attachment descriptor; the file itself is never downloaded here."""
    file_id: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    chat: TelegramChat
    from_: Optional[TelegramUser] = Field(default=None, alias="from")
    date: Optional[int] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    document: Optional[TelegramDocument] = None

    @property
    def body(self) -> str:
        """Free text of the message; attachments fall back to their caption."""
        if self.text is not None:
            return self.text
        return self.caption or ""


class TelegramUpdate(BaseModel):
    """Request body for POST /webhooks/telegram."""
    update_id: int
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None
