"""
Row grouping for two-column form grids.

Each row holds at most ROW_CAPACITY column units. Half and third spans use
one unit, full spans use two. Fields are placed greedily in declaration
order; a field that does not fit closes the current row.
"""

from typing import Dict, List, Sequence

from pyqt_metaforms.forms.field_schema import FieldSchema

ROW_CAPACITY = 2


def column_units(schema: FieldSchema) -> int:
    return schema.col_span.units


def group_fields_into_rows(fields: Sequence[FieldSchema]) -> List[List[FieldSchema]]:
    """
    Partition ``fields`` into visual rows.

    Examples:
        half, half, full, half  ->  [half, half], [full], [half]
        half, full, half        ->  [half], [full], [half]
    """
    rows: List[List[FieldSchema]] = []
    current: List[FieldSchema] = []
    used = 0

    for schema in fields:
        units = column_units(schema)
        if current and used + units > ROW_CAPACITY:
            rows.append(current)
            current, used = [], 0
        current.append(schema)
        used += units

    if current:
        rows.append(current)
    return rows


def build_field_row_helper_map(rows: Sequence[Sequence[FieldSchema]]) -> Dict[str, bool]:
    """Map each field name to whether any field in its row has helper text."""
    helper_map: Dict[str, bool] = {}
    for row in rows:
        reserve = any(schema.has_helper_text for schema in row)
        for schema in row:
            helper_map[schema.name] = reserve
    return helper_map
