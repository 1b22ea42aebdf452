"""
pyqt-metaforms: metadata-driven dynamic forms for PyQt6.

Takes a declarative description of fields, sections and tabs from a
backend metadata service and produces an interactive, validating form.

Architecture:
- Tier 1 (Core): FormValueStore, slugify, background tasks
- Tier 2 (Protocols): Collaborator protocols, config, widget ABCs and adapters
- Tier 3 (Services): User-edit dispatch, flags, signals, REST collaborators
- Tier 4 (Forms): Schema, layout, visibility, derivation, lookups,
  quick-create, household/family reconciliation and the FormController
- Tier 5 (Widgets): PyQt6 rendering of a FormController

Key Features:
- Explicit observer store instead of a reactive framework
- Slug derivation with a permanent manual-edit lock
- Inline quick-create of lookup options
- Household directory merge that never clobbers user-entered values
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
