from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

# --- Telegram Update Envelope ---
# Only the subset of the Bot API Update object the dispatcher reads.

class TelegramUser(BaseModel):
    id: int
    username: Optional[str] = None

class TelegramChat(BaseModel):
    id: int
    type: Optional[str] = None
    username: Optional[str] = None

class MessageEntity(BaseModel):
    type: str
    offset: int = 0
    length: int = 0

class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    from_user: Optional[TelegramUser] = Field(None, alias="from")
    chat: TelegramChat
    date: int = 0
    text: Optional[str] = None
    entities: List[MessageEntity] = Field(default_factory=list)

    @property
    def is_command(self) -> bool:
        return bool(self.text) and bool(self.entities) and self.entities[0].type == "bot_command"

class CallbackQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: TelegramUser = Field(..., alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None

class TelegramUpdate(BaseModel):
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[CallbackQuery] = None

# --- Webhook Response ---

class TelegramWebhookResponse(BaseModel):
    status: str = "ok"
    error: Optional[str] = None
