"""pytest configuration and fixtures for pyqt-metaforms tests."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtWidgets import QApplication

from pyqt_metaforms.exceptions import ActionExecutionError
from pyqt_metaforms.protocols import (
    ActionResult,
    MetaFormConfig,
    register_action_executor,
    register_household_directory,
    register_navigator,
    register_notifier,
    set_form_config,
)


class FakeExecutor:
    """Action executor returning queued results (or raising queued exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, response):
        self.responses.append(response)

    def execute(self, action, input=None, context=None):
        self.calls.append({"action": action, "input": input, "context": context})
        response = self.responses.pop(0) if self.responses else ActionResult(success=True, data={})
        if isinstance(response, Exception):
            raise response
        return response


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def success(self, message):
        self.messages.append(("success", message))

    def error(self, message):
        self.messages.append(("error", message))

    def warning(self, message):
        self.messages.append(("warning", message))

    def of_kind(self, kind):
        return [message for k, message in self.messages if k == kind]


class RecordingNavigator:
    """Navigator that only remembers the URLs it was asked to open."""

    def __init__(self):
        self.history = []

    def push(self, url):
        self.history.append(url)


class FakeDirectory:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = 0

    def fetch_households(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.rows)


@pytest.fixture(scope="session")
def qapp():
    """Create QApplication instance for tests."""
    app = QApplication.instance() or QApplication([])
    yield app
    # Don't quit - may cause issues with other tests


@pytest.fixture(autouse=True)
def inline_config():
    """Run collaborator calls inline and start every test with empty registries."""
    set_form_config(MetaFormConfig(run_actions_in_background=False))
    register_action_executor(None)
    register_household_directory(None)
    register_notifier(None)
    register_navigator(None)
    yield
    set_form_config(MetaFormConfig())


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def failing_executor():
    def make(message="Backend rejected the request", result=None):
        return FakeExecutor(ActionExecutionError(message, result=result))
    return make


HOUSEHOLD_ROWS = [
    {
        "id": "h-1",
        "name": "The Smiths",
        "envelope_number": "117",
        "member_names": ["Jane Smith", "Tom Smith"],
        "address_street": "123 Main",
        "address_city": "Springfield",
        "address_state": "IL",
        "address_postal_code": "62701",
    },
    {
        "id": "h-2",
        "name": "Doe Family",
        "envelope_number": None,
        "member_names": ["Jane Doe"],
        "address_street": None,
        "address_city": None,
        "address_state": None,
        "address_postal_code": None,
    },
]


@pytest.fixture
def household_rows():
    return [dict(row) for row in HOUSEHOLD_ROWS]
