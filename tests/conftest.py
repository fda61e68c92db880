"""Shared fixtures for the bridge test suite."""
import copy
import pytest
from app.config import Settings

NOTION_PROPERTIES = {
    "Name": {"id": "title", "type": "title", "title": {}},
    "Chat ID": {"id": "a", "type": "number", "number": {}},
    "Topic ID": {"id": "b", "type": "number", "number": {}},
    "Message ID": {"id": "c", "type": "number", "number": {}},
    "Update ID": {"id": "d", "type": "number", "number": {}},
    "Status": {
        "id": "e",
        "type": "status",
        "status": {"options": [{"name": "Not started"}, {"name": "In progress"}, {"name": "Done"}]},
    },
}


def build_settings(**overrides) -> Settings:
    """Builds settings with test credentials, ignoring any local .env file."""
    values = {
        "TELEGRAM_BOT_TOKEN": "123:test-token",
        "NOTION_API_TOKEN": "secret_notion",
        **overrides,
    }
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_settings():
    """Factory for settings with test credentials and per-test overrides."""
    return build_settings


@pytest.fixture
def settings(tmp_path):
    """Settings with credentials and a state file inside the test's temp directory."""
    return build_settings(STATE_FILE_PATH=str(tmp_path / "polling_state.json"))


@pytest.fixture
def notion_properties():
    """A database property map with every property the bridge can populate."""
    return copy.deepcopy(NOTION_PROPERTIES)


@pytest.fixture
def text_update():
    """A plain text message delivered in a forum topic."""
    return {
        "update_id": 1001,
        "message": {
            "message_id": 5,
            "message_thread_id": 77,
            "date": 1700000000,
            "chat": {"id": -100123, "title": "Inbox", "type": "supergroup"},
            "text": "hello from telegram",
        },
    }


@pytest.fixture
def document_update():
    """A message carrying a single document without name or MIME type."""
    return {
        "update_id": 1,
        "message": {
            "message_id": 5,
            "chat": {"id": 100, "type": "group"},
            "text": "hello",
            "document": {"file_id": "f1", "file_unique_id": "u1", "file_size": 26214400},
        },
    }
