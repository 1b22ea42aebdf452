"""
Layout constants for PyQt metadata forms.

This module centralizes spacing and margin configuration so every
metadata form and quick-create dialog looks the same.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FormLayoutConfig:
    """Configuration for metadata form layout spacing and margins."""

    # Main form layout settings
    main_layout_spacing: int = 8
    main_layout_margins: tuple = (8, 8, 8, 8)

    # Grid settings (two columns, one row per group_fields_into_rows row)
    grid_horizontal_spacing: int = 12
    grid_vertical_spacing: int = 6

    # Field cell settings (label, control, helper text stacked vertically)
    field_cell_spacing: int = 2
    field_cell_margins: tuple = (0, 0, 0, 0)

    # Height reserved for helper text so row baselines stay aligned
    helper_text_height: int = 16

    # Quick-create "+" button width next to a select
    quick_create_button_width: int = 28


# Default compact configuration
COMPACT_LAYOUT = FormLayoutConfig()

SPACIOUS_LAYOUT = FormLayoutConfig(
    main_layout_spacing=12,
    main_layout_margins=(16, 16, 16, 16),
    grid_horizontal_spacing=24,
    grid_vertical_spacing=12,
    field_cell_spacing=4,
    helper_text_height=18,
)

LAYOUT_PRESETS = {
    "compact": COMPACT_LAYOUT,
    "spacious": SPACIOUS_LAYOUT,
}


def get_layout(preset: str) -> FormLayoutConfig:
    """Resolve a preset name, falling back to the compact layout."""
    return LAYOUT_PRESETS.get(preset, COMPACT_LAYOUT)
