"""Routes a single Telegram update to a task operation.

An update is authorized against the one configured user, classified as a
command message or a button callback, and routed to the matching action.
Everything else is ignored with a success-shaped outcome so Telegram does not
redeliver it.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from api.schemas import CallbackQuery, TelegramMessage, TelegramUpdate, TelegramWebhookResponse
from common.config import Settings
from common.errors import (
    AuthorizationDenied, DecodeError, EmptyTask, NotificationError, TaskBotError, UnknownCommand
)
from common.models import InlineButton, NewTask, OutboundMessage, Task
from common.repository import TaskRepository, build_dynamodb_client
from common.telegram import TelegramClient, extract_command

logger = logging.getLogger(__name__)

ADD_TASK = "add_task"
LIST_TASKS = "tasks"
START = "start"

COMMAND_ALIASES = {
    "add_task": ADD_TASK,
    "add-task": ADD_TASK,
    "add": ADD_TASK,
    "tasks": LIST_TASKS,
    "list_tasks": LIST_TASKS,
    "list-tasks": LIST_TASKS,
    "start": START,
}

STATUS_OK = "ok"
STATUS_IGNORED = "ignored"
STATUS_ERROR = "error"

TASK_CREATED_TEXT = "New task created successfully."
TASK_DONE_TEXT = "Task done and removed."
DONE_BUTTON_LABEL = "✅ Done"


def _response(status: str, error: Optional[str] = None) -> Dict[str, Any]:
    return TelegramWebhookResponse(status=status, error=error).model_dump(exclude_none=True)


class Dispatcher:
    def __init__(self, settings: Settings, repository: TaskRepository, telegram: TelegramClient):
        self.settings = settings
        self.repository = repository
        self.telegram = telegram

    async def handle(self, raw_body: Union[str, bytes]) -> Tuple[int, Dict[str, Any]]:
        """
        Entry point for the inbound transport.
        Always answers 200 so Telegram never retries an update.
        """
        try:
            update = self.decode(raw_body)
        except DecodeError as exc:
            logger.warning("Ignoring malformed update: %s", exc)
            return 200, _response(STATUS_IGNORED)

        try:
            outcome = await self.dispatch(update)
        except TaskBotError as exc:
            logger.error("Update %s failed (%s): %s", update.update_id, exc.code, exc)
            return 200, _response(STATUS_ERROR, exc.code)
        return 200, _response(outcome)

    def decode(self, raw_body: Union[str, bytes]) -> TelegramUpdate:
        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Body is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise DecodeError("Update must be a JSON object")
        try:
            return TelegramUpdate.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(f"Update does not match the expected shape: {exc}") from exc

    async def dispatch(self, update: TelegramUpdate) -> str:
        if update.message is None and update.callback_query is None:
            logger.info("Ignoring update %s: not a command or callback", update.update_id)
            return STATUS_IGNORED

        try:
            self.authorize(update)
        except AuthorizationDenied as exc:
            logger.warning("Ignoring update %s: %s", update.update_id, exc)
            return STATUS_IGNORED

        message = update.message
        if message is not None and message.is_command:
            await self.run_command(message)
            return STATUS_OK

        callback = update.callback_query
        if callback is not None and (callback.data or "").strip():
            await self.complete_task(callback)
            return STATUS_OK

        logger.info("Ignoring update %s: not a command or callback", update.update_id)
        return STATUS_IGNORED

    def authorize(self, update: TelegramUpdate) -> None:
        """Both the sender and the target chat must be the authorized user."""
        if update.message is not None:
            sender = update.message.from_user
            chat = update.message.chat
        elif update.callback_query is not None:
            sender = update.callback_query.from_user
            chat = update.callback_query.message.chat if update.callback_query.message else None
        else:
            raise AuthorizationDenied("update has no sender")

        if sender is None or chat is None:
            raise AuthorizationDenied("update has no sender or chat")
        authorized = self.settings.authorized_user_id
        if str(sender.id) != authorized or str(chat.id) != authorized:
            raise AuthorizationDenied(f"user {sender.id} in chat {chat.id} is not authorized")

    async def run_command(self, message: TelegramMessage) -> None:
        command, args = extract_command(message.text or "")
        name = COMMAND_ALIASES.get(command or "")
        chat_id = str(message.chat.id)
        try:
            if name == ADD_TASK:
                await self.add_task(message, args)
            elif name == LIST_TASKS:
                await self.list_tasks(chat_id)
            elif name == START:
                logger.info("Received /start in chat %s", chat_id)
            else:
                raise UnknownCommand(command or (message.text or "").split(maxsplit=1)[0])
        except TaskBotError as exc:
            logger.error("Command %s in chat %s failed: %s", command, chat_id, exc)
            raise

    async def add_task(self, message: TelegramMessage, args: Optional[str]) -> Task:
        words = (args or "").split()
        if not words:
            raise EmptyTask()

        new_task = NewTask(
            owner_id=str(message.from_user.id),
            source_message_id=str(message.message_id),
            created_at=str(message.date),
            text=" ".join(words),
            chat_id=str(message.chat.id),
        )
        task = await asyncio.to_thread(self.repository.create, new_task)
        logger.info("Created task %s in chat %s", task.task_id, task.chat_id)

        # The task stays stored even if the confirmation cannot be delivered.
        await self.telegram.send(OutboundMessage(chat_id=task.chat_id, text=TASK_CREATED_TEXT))
        return task

    async def list_tasks(self, chat_id: str) -> List[Task]:
        tasks = await asyncio.to_thread(self.repository.list_pending, self.settings.authorized_user_id)
        failures = 0
        for task in tasks:
            try:
                message = OutboundMessage(
                    chat_id=chat_id,
                    text=task.text,
                    inline_button=InlineButton(label=DONE_BUTTON_LABEL, callback_data=task.task_id),
                )
                await self.telegram.send(message)
            except (NotificationError, ValidationError) as exc:
                failures += 1
                logger.error("Failed to send task %s to chat %s: %s", task.task_id, chat_id, exc)
        if failures:
            raise NotificationError(f"{failures} of {len(tasks)} task messages could not be sent")
        return tasks

    async def complete_task(self, callback: CallbackQuery) -> None:
        # Reply where the button lives, not where the task was added.
        chat_id = str(callback.message.chat.id)
        owner_id = str(callback.from_user.id)
        task_id = callback.data.strip()

        await self.telegram.answer_callback_query(callback.id)
        try:
            await asyncio.to_thread(self.repository.delete, owner_id, task_id)
            logger.info("Deleted task %s for owner %s", task_id, owner_id)
            await self.telegram.send(OutboundMessage(chat_id=chat_id, text=TASK_DONE_TEXT))
        except TaskBotError as exc:
            logger.error("Callback for task %s in chat %s failed: %s", task_id, chat_id, exc)
            raise


def build_dispatcher(settings: Settings) -> Dispatcher:
    repository = TaskRepository(
        build_dynamodb_client(settings),
        table_name=settings.TASKS_TABLE,
        status_index=settings.TASKS_STATUS_INDEX,
    )
    telegram = TelegramClient(
        settings.BOT_TOKEN,
        api_base=settings.TELEGRAM_API_BASE,
        timeout_seconds=settings.TELEGRAM_TIMEOUT_SECONDS,
    )
    return Dispatcher(settings, repository, telegram)
