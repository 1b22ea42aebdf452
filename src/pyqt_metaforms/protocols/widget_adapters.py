"""
Widget adapters that wrap Qt widgets to implement the form ABCs.

Normalizes Qt's inconsistent APIs:
- QLineEdit.text() vs QDoubleSpinBox.value() vs QComboBox.currentData()
- QLineEdit.textEdited vs QComboBox.activated vs QCheckBox.clicked

All adapters implement consistent interface via ABCs:
- get_value() / set_value() for all widgets
- set_placeholder() where Qt supports one
- connect_change_signal() for user edits only
"""

from abc import ABCMeta
from typing import Any, Callable, List, Sequence

from PyQt6.QtCore import QDate, QObject
from PyQt6.QtWidgets import (
    QCheckBox, QComboBox, QDateEdit, QDoubleSpinBox, QLineEdit, QPlainTextEdit,
)

from .widget_protocols import (
    ValueGettable, ValueSettable, PlaceholderCapable,
    OptionSelectable, ChangeSignalEmitter,
)

# PyQt-specific metaclass that combines ABCMeta with Qt's metaclass
_QtMetaclass = type(QObject)


class PyQtWidgetMeta(_QtMetaclass, ABCMeta):
    """Metaclass for PyQt widgets that need ABC support."""
    pass


DATE_FORMAT = "yyyy-MM-dd"


class LineEditAdapter(QLineEdit, ValueGettable, ValueSettable, PlaceholderCapable,
                      ChangeSignalEmitter, metaclass=PyQtWidgetMeta):
    """
    Adapter for QLineEdit (text, email, tel, hidden).

    Returns the raw text so that typed whitespace survives a round trip
    through the value store.
    """

    _widget_id = "line_edit"

    def get_value(self) -> Any:
        return self.text()

    def set_value(self, value: Any) -> None:
        self.setText("" if value is None else str(value))

    def set_placeholder(self, text: str) -> None:
        self.setPlaceholderText(text)

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        # textEdited fires for user typing only, never for setText()
        self.textEdited.connect(lambda _text: callback(self.get_value()))


class TagsLineEditAdapter(LineEditAdapter):
    """Comma separated line edit holding a list of strings."""

    _widget_id = "tags_line_edit"

    def get_value(self) -> Any:
        return [tag.strip() for tag in self.text().split(",") if tag.strip()]

    def set_value(self, value: Any) -> None:
        if isinstance(value, (list, tuple)):
            self.setText(", ".join(str(v) for v in value))
        else:
            super().set_value(value)


class PlainTextEditAdapter(QPlainTextEdit, ValueGettable, ValueSettable, PlaceholderCapable,
                           ChangeSignalEmitter, metaclass=PyQtWidgetMeta):
    """Adapter for QPlainTextEdit (textarea, multiline)."""

    _widget_id = "plain_text_edit"

    def get_value(self) -> Any:
        return self.toPlainText()

    def set_value(self, value: Any) -> None:
        self.setPlainText("" if value is None else str(value))

    def set_placeholder(self, text: str) -> None:
        self.setPlaceholderText(text)

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        self.textChanged.connect(lambda: callback(self.get_value()))


class DoubleSpinBoxAdapter(QDoubleSpinBox, ValueGettable, ValueSettable,
                           PlaceholderCapable, ChangeSignalEmitter, metaclass=PyQtWidgetMeta):
    """
    Adapter for QDoubleSpinBox (number, currency).

    Handles None values using the special value text shown at minimum.
    """

    _widget_id = "double_spin_box"

    def __init__(self, parent=None, decimals: int = 2):
        super().__init__(parent)
        self.setSpecialValueText(" ")  # Empty special value = None
        self.setRange(-1e12, 1e12)
        self.setDecimals(decimals)
        self.setValue(self.minimum())

    def get_value(self) -> Any:
        if self.value() == self.minimum() and self.specialValueText():
            return None
        return self.value()

    def set_value(self, value: Any) -> None:
        if value is None or value == "":
            self.setValue(self.minimum())
        else:
            self.setValue(float(value))

    def set_placeholder(self, text: str) -> None:
        self.setSpecialValueText(text or " ")

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        self.valueChanged.connect(lambda _value: callback(self.get_value()))


class DateEditAdapter(QDateEdit, ValueGettable, ValueSettable, ChangeSignalEmitter,
                      metaclass=PyQtWidgetMeta):
    """Adapter for QDateEdit storing ISO ``YYYY-MM-DD`` strings."""

    _widget_id = "date_edit"

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setCalendarPopup(True)
        self.setDisplayFormat(DATE_FORMAT)
        self.setSpecialValueText(" ")
        self.setDate(self.minimumDate())

    def get_value(self) -> Any:
        if self.date() == self.minimumDate():
            return None
        return self.date().toString(DATE_FORMAT)

    def set_value(self, value: Any) -> None:
        date = QDate.fromString(str(value), DATE_FORMAT) if value else QDate()
        self.setDate(date if date.isValid() else self.minimumDate())

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        self.dateChanged.connect(lambda _date: callback(self.get_value()))


class ComboBoxAdapter(QComboBox, ValueGettable, ValueSettable, PlaceholderCapable,
                      OptionSelectable, ChangeSignalEmitter, metaclass=PyQtWidgetMeta):
    """
    Adapter for QComboBox (select).

    Stores option values in itemData, not just display text.
    """

    _widget_id = "combo_box"

    def get_value(self) -> Any:
        if self.currentIndex() < 0:
            return None
        return self.itemData(self.currentIndex())

    def set_value(self, value: Any) -> None:
        for i in range(self.count()):
            if self.itemData(i) == value:
                self.setCurrentIndex(i)
                return
        # Value not found - clear selection
        self.setCurrentIndex(-1)

    def set_placeholder(self, text: str) -> None:
        self.setPlaceholderText(text)

    def set_options(self, options: Sequence[Any]) -> None:
        current = self.get_value()
        self.blockSignals(True)
        try:
            self.clear()
            for option in options:
                self.addItem(option.label, option.value)
            self.set_value(current)
        finally:
            self.blockSignals(False)

    def option_values(self) -> List[Any]:
        return [self.itemData(i) for i in range(self.count())]

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        self.activated.connect(lambda _index: callback(self.get_value()))


class CheckBoxAdapter(QCheckBox, ValueGettable, ValueSettable,
                      ChangeSignalEmitter, metaclass=PyQtWidgetMeta):
    """
    Adapter for QCheckBox (toggle).

    Returns bool values, treats None as False.
    """

    _widget_id = "check_box"

    def get_value(self) -> Any:
        return self.isChecked()

    def set_value(self, value: Any) -> None:
        self.setChecked(bool(value) if value is not None else False)

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        self.clicked.connect(lambda _checked: callback(self.get_value()))
