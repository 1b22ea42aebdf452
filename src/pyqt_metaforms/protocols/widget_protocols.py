"""
Widget ABC contracts for metadata form controls.

Every control the form renders implements these explicitly, so
MetadataFormWidget reads, mirrors and listens to a text field, a select
and the household picker through the same four calls. A control missing
one of them fails at construction instead of at the first edit.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence


class ValueGettable(ABC):
    """Control whose current content can be read as a store value."""

    @abstractmethod
    def get_value(self) -> Any:
        """Current value; None when the control is empty."""


class ValueSettable(ABC):
    """Control that can show a value written to the store by someone else."""

    @abstractmethod
    def set_value(self, value: Any) -> None:
        """Show ``value``; None clears the control. Must not be treated as a user edit."""


class PlaceholderCapable(ABC):

    @abstractmethod
    def set_placeholder(self, text: str) -> None:
        pass


class OptionSelectable(ABC):
    """Select control whose options grow when quick-create learns a new one."""

    @abstractmethod
    def set_options(self, options: Sequence[Any]) -> None:
        """
        Replace the options (FormFieldOption: label shown, value stored).

        The current value stays selected when it is still among the options.
        """


class ChangeSignalEmitter(ABC):
    """Control that reports direct user edits."""

    @abstractmethod
    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        """
        Call ``callback(new_value)`` on each user edit.

        Programmatic ``set_value`` calls are mirrored with signals blocked
        and must never reach the callback.
        """
