"""Interface for operator-facing console output.

Used by the CLI commands (cache inspection, server startup messages) so
they can be exercised in tests without a real terminal.
"""

import abc
from typing import Any


class UserInterface(abc.ABC):
    """Abstract Base Class for operator output."""

    @abc.abstractmethod
    def display_output(self, output: Any, **kwargs: Any) -> None:
        """Displays a value (usually decoded cache content) to the operator.

        Args:
            output: The value to display; structured data is rendered as JSON.
            **kwargs: Additional arguments for formatting (e.g. title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass
