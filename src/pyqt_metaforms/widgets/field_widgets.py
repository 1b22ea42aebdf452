"""
Controls for metadata fields, created by explicit field-type dispatch.

FieldWidgetFactory discovers its ``_create_<field type>`` methods at
construction, so adding a field type means adding one method. A field type
without a creator fails loudly.

FieldEditor stacks label, control, helper text and inline error for one
field, plus the "+" quick-create button for select fields that carry a
quick-create descriptor.
"""

import logging
from typing import Callable, Dict, Optional

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtWidgets import (
    QHBoxLayout, QLabel, QLineEdit, QPlainTextEdit, QPushButton, QVBoxLayout, QWidget,
)

from pyqt_metaforms.forms.field_schema import FieldSchema, FieldType
from pyqt_metaforms.forms.layout_constants import COMPACT_LAYOUT, FormLayoutConfig
from pyqt_metaforms.protocols.widget_adapters import (
    CheckBoxAdapter, LineEditAdapter, PlainTextEditAdapter, TagsLineEditAdapter,
)
from pyqt_metaforms.protocols.widget_protocols import OptionSelectable, PlaceholderCapable
from pyqt_metaforms.widgets.no_scroll_spinbox import (
    NoScrollComboBox, NoScrollDateEdit, NoScrollDoubleSpinBox,
)

logger = logging.getLogger(__name__)

DEFAULT_TEXTAREA_ROWS = 3
ERROR_STYLE = "color: #c62828;"
HELPER_STYLE = "color: #757575;"


class FieldWidgetFactory:
    """
    Creates the control for a FieldSchema by dispatching on its type.

    Examples:
        factory = FieldWidgetFactory()
        control = factory.create(FieldSchema(name="code", type=FieldType.TEXT))
    """

    HANDLER_PREFIX = "_create_"

    def __init__(self):
        self._creators: Dict[str, Callable[[FieldSchema, Optional[QWidget]], QWidget]] = {}
        for attr_name in dir(self):
            if attr_name.startswith(self.HANDLER_PREFIX):
                self._creators[attr_name[len(self.HANDLER_PREFIX):]] = getattr(self, attr_name)
        logger.debug(f"FieldWidgetFactory creators: {sorted(self._creators)}")

    def create(self, schema: FieldSchema, parent: Optional[QWidget] = None) -> QWidget:
        """
        Raises:
            TypeError: If no creator is registered for the field type
        """
        creator = self._creators.get(schema.type.value)
        if creator is None:
            raise TypeError(f"No control registered for field type {schema.type.value!r}")

        control = creator(schema, parent)
        control.setObjectName(schema.name)
        if schema.placeholder and isinstance(control, PlaceholderCapable):
            control.set_placeholder(schema.placeholder)
        if isinstance(control, OptionSelectable):
            control.set_options(schema.options)
        self._apply_editability(schema, control)
        return control

    @staticmethod
    def _apply_editability(schema: FieldSchema, control: QWidget) -> None:
        if schema.disabled:
            control.setEnabled(False)
        elif schema.read_only:
            if isinstance(control, (QLineEdit, QPlainTextEdit)):
                control.setReadOnly(True)
            else:
                control.setEnabled(False)

    # Creators, one per FieldType value

    def _create_text(self, schema, parent):
        return LineEditAdapter(parent)

    def _create_email(self, schema, parent):
        return LineEditAdapter(parent)

    def _create_tel(self, schema, parent):
        return LineEditAdapter(parent)

    def _create_image(self, schema, parent):
        control = LineEditAdapter(parent)
        control.setPlaceholderText("Image URL")
        return control

    def _create_hidden(self, schema, parent):
        control = LineEditAdapter(parent)
        control.setVisible(False)
        return control

    def _create_textarea(self, schema, parent):
        control = PlainTextEditAdapter(parent)
        rows = schema.rows or DEFAULT_TEXTAREA_ROWS
        control.setFixedHeight(control.fontMetrics().lineSpacing() * rows + 12)
        return control

    def _create_multiline(self, schema, parent):
        return self._create_textarea(schema, parent)

    def _create_number(self, schema, parent):
        return NoScrollDoubleSpinBox(parent, decimals=0)

    def _create_currency(self, schema, parent):
        control = NoScrollDoubleSpinBox(parent, decimals=2)
        control.setPrefix("$")
        return control

    def _create_date(self, schema, parent):
        return NoScrollDateEdit(parent)

    def _create_select(self, schema, parent):
        return NoScrollComboBox(parent, placeholder=schema.placeholder or "Select an option")

    def _create_toggle(self, schema, parent):
        return CheckBoxAdapter(parent)

    def _create_checkbox(self, schema, parent):
        return CheckBoxAdapter(parent)

    def _create_tags(self, schema, parent):
        control = TagsLineEditAdapter(parent)
        control.setPlaceholderText("Comma separated")
        return control


class FieldEditor(QWidget):
    """Label, control, helper text and inline error for one field."""

    quick_create_requested = pyqtSignal(str)

    def __init__(
        self,
        schema: FieldSchema,
        control: QWidget,
        layout_config: FormLayoutConfig = COMPACT_LAYOUT,
        reserve_helper_space: bool = False,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self.schema = schema
        self.control = control
        self.quick_create_button: Optional[QPushButton] = None

        layout = QVBoxLayout(self)
        layout.setSpacing(layout_config.field_cell_spacing)
        layout.setContentsMargins(*layout_config.field_cell_margins)

        self.label = QLabel(f"{schema.display_label} *" if schema.required else schema.display_label)
        self.label.setBuddy(control)
        layout.addWidget(self.label)

        if schema.type is FieldType.SELECT and schema.quick_create is not None:
            row = QHBoxLayout()
            row.setContentsMargins(0, 0, 0, 0)
            row.addWidget(control, 1)
            self.quick_create_button = QPushButton("+")
            self.quick_create_button.setFixedWidth(layout_config.quick_create_button_width)
            self.quick_create_button.setToolTip(schema.quick_create.label or "Add new option")
            self.quick_create_button.clicked.connect(lambda: self.quick_create_requested.emit(schema.name))
            row.addWidget(self.quick_create_button)
            layout.addLayout(row)
        else:
            layout.addWidget(control)

        self.helper_label = QLabel(schema.helper_text or "")
        self.helper_label.setWordWrap(True)
        self.helper_label.setStyleSheet(HELPER_STYLE)
        if not schema.has_helper_text:
            if reserve_helper_space:
                # Keep the row's baseline aligned with a sibling that has helper text
                self.helper_label.setFixedHeight(layout_config.helper_text_height)
            else:
                self.helper_label.setVisible(False)
        layout.addWidget(self.helper_label)

        self.error_label = QLabel()
        self.error_label.setWordWrap(True)
        self.error_label.setStyleSheet(ERROR_STYLE)
        self.error_label.setVisible(False)
        layout.addWidget(self.error_label)

    def set_error(self, message: Optional[str]) -> None:
        self.error_label.setText(message or "")
        self.error_label.setVisible(bool(message))
