"""
No-scroll controls for PyQt6.

Prevents accidental value changes from mouse wheel events while the user
scrolls a long form.
"""

from PyQt6.QtGui import QWheelEvent

# Adapters already implement ValueGettable/ValueSettable
from pyqt_metaforms.protocols.widget_adapters import (
    ComboBoxAdapter, DateEditAdapter, DoubleSpinBoxAdapter,
)


class NoScrollDoubleSpinBox(DoubleSpinBoxAdapter):
    """Number/currency control that ignores wheel events."""

    def wheelEvent(self, event: QWheelEvent):
        event.ignore()


class NoScrollComboBox(ComboBoxAdapter):
    """Select control that ignores wheel events.

    Shows the placeholder while no option is selected (value None).
    """

    def __init__(self, parent=None, placeholder: str = ""):
        super().__init__(parent)
        if placeholder:
            self.set_placeholder(placeholder)
        self.setCurrentIndex(-1)

    def wheelEvent(self, event: QWheelEvent):
        event.ignore()


class NoScrollDateEdit(DateEditAdapter):
    """Date control that ignores wheel events."""

    def wheelEvent(self, event: QWheelEvent):
        event.ignore()
