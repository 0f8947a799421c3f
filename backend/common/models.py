from enum import Enum as PyEnum
from typing import Optional

from pydantic import BaseModel, Field

# --- Enums ---

class TaskStatus(PyEnum):
    pending = "pending"
    done = "done"

# --- Tasks ---

class NewTask(BaseModel):
    owner_id: str
    source_message_id: str
    created_at: str
    text: str = Field(..., min_length=1)
    chat_id: str

class Task(NewTask):
    task_id: str
    status: TaskStatus = TaskStatus.pending

# --- Outbound messages ---

class InlineButton(BaseModel):
    label: str
    callback_data: str = Field(..., max_length=64)

class OutboundMessage(BaseModel):
    chat_id: str
    text: str
    inline_button: Optional[InlineButton] = None
