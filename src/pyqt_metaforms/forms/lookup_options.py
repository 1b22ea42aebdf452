"""
Working option sets for select fields.

Base options come from the schema (or the form's lookup map); learned
options come from successful quick-create flows and live only as long as
the form session.
"""

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from pyqt_metaforms.forms.field_schema import FieldSchema, FieldType, FormFieldOption

logger = logging.getLogger(__name__)


def merge_options(
    base: Iterable[FormFieldOption],
    learned: Iterable[FormFieldOption],
) -> List[FormFieldOption]:
    """
    Base options first, then each learned option whose value is new.

    Duplicates are collapsed by value; the first label seen wins.
    """
    merged: List[FormFieldOption] = []
    seen = set()
    for option in list(base) + list(learned):
        if option.value in seen:
            continue
        seen.add(option.value)
        merged.append(option)
    return merged


class LearnedOptionRegistry:
    """Per-field options learned during this form session."""

    def __init__(self):
        self._learned: Dict[str, List[FormFieldOption]] = {}

    def learn(self, field_name: str, option: FormFieldOption, base: Sequence[FormFieldOption] = ()) -> bool:
        """Record ``option`` unless its value is already known. Returns True if added."""
        existing = self._learned.setdefault(field_name, [])
        if any(item.value == option.value for item in list(base) + existing):
            logger.debug(f"Option {option.value!r} already known for {field_name}")
            return False
        existing.append(option)
        logger.info(f"Learned option {option.value!r} for {field_name}")
        return True

    def options_for(self, field_name: str) -> Tuple[FormFieldOption, ...]:
        return tuple(self._learned.get(field_name, ()))

    def merged_options(self, schema: FieldSchema) -> List[FormFieldOption]:
        return merge_options(schema.options, self.options_for(schema.name))

    def augment(self, schema: FieldSchema) -> FieldSchema:
        """Return ``schema`` with learned options merged in (select fields only)."""
        if schema.type is not FieldType.SELECT or not self._learned.get(schema.name):
            return schema
        return schema.with_changes(options=tuple(self.merged_options(schema)))

    def clear(self) -> None:
        self._learned.clear()
