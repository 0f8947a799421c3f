from typing import Optional


class TaskBotError(Exception):
    """Base error for everything the dispatcher can report back to the webhook."""

    code = "error"


class DecodeError(TaskBotError):
    code = "decode_error"


class AuthorizationDenied(TaskBotError):
    # Not a failure: unauthorized updates are dropped quietly.
    code = "unauthorized"


class UnknownCommand(TaskBotError):
    code = "unknown_command"

    def __init__(self, command: str):
        super().__init__(f"Unknown command: {command}")
        self.command = command


class EmptyTask(TaskBotError):
    code = "empty_task"

    def __init__(self):
        super().__init__("Task text is empty")


class StoreError(TaskBotError):
    code = "store_error"


class CodecError(StoreError):
    code = "codec_error"


class NotificationError(TaskBotError):
    code = "notification_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
