"""
PyQt6 widgets for metadata forms.

Controls built on the protocol adapters, plus the form, quick-create and
household widgets that render a FormController.
"""

from .no_scroll_spinbox import (
    NoScrollDoubleSpinBox,
    NoScrollComboBox,
    NoScrollDateEdit,
)
from .field_widgets import FieldEditor, FieldWidgetFactory
from .household_selector import HouseholdSelector
from .quick_create_dialog import QuickCreateDialog
from .metadata_form_widget import MetadataFormWidget

__all__ = [
    "NoScrollDoubleSpinBox",
    "NoScrollComboBox",
    "NoScrollDateEdit",
    "FieldEditor",
    "FieldWidgetFactory",
    "HouseholdSelector",
    "QuickCreateDialog",
    "MetadataFormWidget",
]
