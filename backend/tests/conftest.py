"""Shared fixtures for tests.

Collaborators (DynamoDB, Telegram) are replaced at the dispatcher boundary so
no test touches the network.
"""
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Must be set before building settings.
os.environ["BOT_TOKEN"] = "test_bot_token"
os.environ["AUTHORIZED_USER_ID"] = "12345"
os.environ["TELEGRAM_WEBHOOK_SECRET"] = "test_secret"
os.environ["AWS_REGION"] = "eu-west-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from api.dispatcher import Dispatcher
from api.main import create_app
from common.config import Settings
from common.models import Task
from common.repository import TaskRepository
from common.telegram import TelegramClient


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def mock_repository():
    repo = MagicMock(spec=TaskRepository)
    repo.create.side_effect = lambda new_task: Task(**new_task.model_dump(), task_id="task-new")
    repo.list_pending.return_value = []
    repo.delete.return_value = None
    return repo


@pytest.fixture
def mock_telegram():
    client = MagicMock(spec=TelegramClient)
    client.send = AsyncMock(return_value={"ok": True})
    client.answer_callback_query = AsyncMock(return_value=True)
    client.get_me = AsyncMock(return_value={"ok": True})
    return client


@pytest.fixture
def dispatcher(settings, mock_repository, mock_telegram):
    return Dispatcher(settings, mock_repository, mock_telegram)


@pytest.fixture
def app_with_mocks(dispatcher):
    return create_app(dispatcher=dispatcher)
