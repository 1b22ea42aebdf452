"""
Form engine.

Field schema, layout grouping, visibility, derivation, lookup options,
quick-create, household/family reconciliation and the FormController that
composes them.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .field_schema import (
        FieldSchema, FieldType, ColSpan, FormFieldOption, VisibilityCondition, QuickCreateConfig, parse_fields,
    )
    from .layout import group_fields_into_rows, build_field_row_helper_map
    from .visibility import is_visible, VisibilityTracker
    from .derivation import DerivationEngine
    from .lookup_options import merge_options, LearnedOptionRegistry
    from .quick_create import QuickCreateFlow, QuickCreateState
    from .household import HouseholdOption, HouseholdReconciler, build_household_key, merge_household_options
    from .family import FamilyMembership, FamilyOption, FamilyReconciler
    from .submit_handler import FormSubmitHandler, SubmitOutcome
    from .form_controller import FormController

_EXPORTS = {
    "FieldSchema": ("pyqt_metaforms.forms.field_schema", "FieldSchema"),
    "FieldType": ("pyqt_metaforms.forms.field_schema", "FieldType"),
    "ColSpan": ("pyqt_metaforms.forms.field_schema", "ColSpan"),
    "FormFieldOption": ("pyqt_metaforms.forms.field_schema", "FormFieldOption"),
    "VisibilityCondition": ("pyqt_metaforms.forms.field_schema", "VisibilityCondition"),
    "QuickCreateConfig": ("pyqt_metaforms.forms.field_schema", "QuickCreateConfig"),
    "parse_fields": ("pyqt_metaforms.forms.field_schema", "parse_fields"),
    "group_fields_into_rows": ("pyqt_metaforms.forms.layout", "group_fields_into_rows"),
    "build_field_row_helper_map": ("pyqt_metaforms.forms.layout", "build_field_row_helper_map"),
    "is_visible": ("pyqt_metaforms.forms.visibility", "is_visible"),
    "VisibilityTracker": ("pyqt_metaforms.forms.visibility", "VisibilityTracker"),
    "DerivationEngine": ("pyqt_metaforms.forms.derivation", "DerivationEngine"),
    "merge_options": ("pyqt_metaforms.forms.lookup_options", "merge_options"),
    "LearnedOptionRegistry": ("pyqt_metaforms.forms.lookup_options", "LearnedOptionRegistry"),
    "QuickCreateFlow": ("pyqt_metaforms.forms.quick_create", "QuickCreateFlow"),
    "QuickCreateState": ("pyqt_metaforms.forms.quick_create", "QuickCreateState"),
    "HouseholdOption": ("pyqt_metaforms.forms.household", "HouseholdOption"),
    "HouseholdReconciler": ("pyqt_metaforms.forms.household", "HouseholdReconciler"),
    "build_household_key": ("pyqt_metaforms.forms.household", "build_household_key"),
    "merge_household_options": ("pyqt_metaforms.forms.household", "merge_household_options"),
    "FamilyMembership": ("pyqt_metaforms.forms.family", "FamilyMembership"),
    "FamilyOption": ("pyqt_metaforms.forms.family", "FamilyOption"),
    "FamilyReconciler": ("pyqt_metaforms.forms.family", "FamilyReconciler"),
    "FormSubmitHandler": ("pyqt_metaforms.forms.submit_handler", "FormSubmitHandler"),
    "SubmitOutcome": ("pyqt_metaforms.forms.submit_handler", "SubmitOutcome"),
    "FormController": ("pyqt_metaforms.forms.form_controller", "FormController"),
}


def __getattr__(name: str):
    if name in _EXPORTS:
        module_name, attr = _EXPORTS[name]
        module = importlib.import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_EXPORTS.keys())
