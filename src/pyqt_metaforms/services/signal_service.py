"""
Mirroring store writes into controls without re-entering user-edit dispatch.

Every write that did not come from the control itself (derived slugs,
household reconciliation, resets, learned options) reaches the control
through this service, with the control's signals blocked for the duration.
"""

from contextlib import contextmanager
from typing import Any, Sequence
from PyQt6.QtWidgets import QWidget
import logging

from pyqt_metaforms.protocols.widget_protocols import OptionSelectable, ValueSettable

logger = logging.getLogger(__name__)


class SignalService:
    """
    Examples:
        # Mirror a derived value into the code control:
        SignalService.update_widget_value(code_edit, "new-fund")

        # Refresh a select after quick-create learned an option:
        SignalService.update_widget_options(combo, schema.options, "youth-ministry")
    """

    @staticmethod
    @contextmanager
    def block_signals(*widgets: QWidget):
        """Block signals of every given widget, restoring each one's previous state."""
        previous = [(w, w.blockSignals(True)) for w in widgets if w is not None]
        try:
            yield
        finally:
            for widget, was_blocked in reversed(previous):
                widget.blockSignals(was_blocked)

    @staticmethod
    def update_widget_value(widget: QWidget, value: Any) -> None:
        """
        Raises:
            TypeError: If the control does not implement ValueSettable
        """
        if not isinstance(widget, ValueSettable):
            raise TypeError(f"{type(widget).__name__} does not implement ValueSettable")
        with SignalService.block_signals(widget):
            widget.set_value(value)
        logger.debug(f"Mirrored {repr(value)[:40]} into {widget.objectName() or type(widget).__name__}")

    @staticmethod
    def update_widget_options(widget: QWidget, options: Sequence[Any], value: Any) -> None:
        """Replace a select's options, then show ``value`` (which may be a just-learned option)."""
        if not isinstance(widget, OptionSelectable):
            raise TypeError(f"{type(widget).__name__} does not implement OptionSelectable")
        with SignalService.block_signals(widget):
            widget.set_options(options)
        SignalService.update_widget_value(widget, value)
