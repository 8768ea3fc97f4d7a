import pytest
from unittest.mock import MagicMock

from rich.json import JSON
from rich.panel import Panel
from rich.text import Text

from wabridge.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console object."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock):
    """Fixture to create a ConsoleDisplay instance with a mocked console."""
    display = ConsoleDisplay()
    display.console = mock_console  # Inject the mock
    return display


def printed_panel(mock_console: MagicMock) -> Panel:
    mock_console.print.assert_called_once()
    args, _ = mock_console.print.call_args
    assert isinstance(args[0], Panel)
    return args[0]


def test_display_output_renders_json(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output({"connected": True}, title="wa_session")

    panel = printed_panel(mock_console)
    assert isinstance(panel.renderable, JSON)
    assert "wa_session" in panel.title


def test_display_output_falls_back_to_repr(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output({1, 2})

    panel = printed_panel(mock_console)
    assert isinstance(panel.renderable, Text)
    assert panel.renderable.plain == "{1, 2}"


def test_display_error(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_error("Something went wrong")

    panel = printed_panel(mock_console)
    assert panel.renderable.plain == "Something went wrong"
    assert "Error" in panel.title


def test_display_info(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_info("Stored 'k' for 60s")

    panel = printed_panel(mock_console)
    assert panel.renderable.plain == "Stored 'k' for 60s"
    assert "Info" in panel.title


def test_display_warning(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_warning("No value for key 'k'")

    panel = printed_panel(mock_console)
    assert "Warning" in panel.title
