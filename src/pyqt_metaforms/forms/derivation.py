"""
Derived-value computation (slug from name).

A field declaring ``derive_slug_from`` follows its source field until the
user types into it. From then on the field is in the manually-edited set
for the rest of the form's lifetime, and derivation leaves it alone.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Set

from pyqt_metaforms.core.slug import slugify
from pyqt_metaforms.core.value_store import ChangeSource, FormValueStore, ValueChange
from pyqt_metaforms.forms.field_schema import FieldSchema
from pyqt_metaforms.protocols.form_config import get_form_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivationMapping:
    source: str
    target: str


def build_derivation_mappings(fields: Sequence[FieldSchema]) -> List[DerivationMapping]:
    return [
        DerivationMapping(source=schema.derive_slug_from, target=schema.name)
        for schema in fields
        if schema.derive_slug_from
    ]


class DerivationEngine:
    """Store listener that writes ``slugify(source)`` into unlocked targets."""

    def __init__(
        self,
        store: FormValueStore,
        mappings: Sequence[DerivationMapping],
        max_length: Optional[int] = None,
    ):
        self._store = store
        self._max_length = max_length if max_length is not None else get_form_config().slug_max_length
        self._by_source: Dict[str, List[DerivationMapping]] = {}
        self._manually_edited: Set[str] = set()
        self._unsubscribers: List[Callable[[], None]] = []

        for mapping in mappings:
            self._by_source.setdefault(mapping.source, []).append(mapping)
        for source in self._by_source:
            self._unsubscribers.append(store.subscribe(source, self._on_source_change))

        if mappings:
            logger.debug(f"Derivation mappings: {[(m.source, m.target) for m in mappings]}")

    @classmethod
    def from_fields(cls, store: FormValueStore, fields: Sequence[FieldSchema], **kwargs) -> "DerivationEngine":
        return cls(store, build_derivation_mappings(fields), **kwargs)

    @property
    def targets(self) -> FrozenSet[str]:
        return frozenset(m.target for mappings in self._by_source.values() for m in mappings)

    @property
    def manually_edited(self) -> FrozenSet[str]:
        return frozenset(self._manually_edited)

    def is_derived_target(self, name: str) -> bool:
        return name in self.targets

    def is_manually_edited(self, name: str) -> bool:
        return name in self._manually_edited

    def mark_manually_edited(self, name: str) -> None:
        """Permanently stop deriving ``name``. There is no way to undo this."""
        if name not in self._manually_edited:
            self._manually_edited.add(name)
            logger.debug(f"Derived field {name} locked by manual edit")

    def _on_source_change(self, change: ValueChange) -> None:
        if change.is_reset:
            return
        if not isinstance(change.value, str):
            return

        for mapping in self._by_source.get(change.field_name, ()):
            if mapping.target in self._manually_edited:
                continue
            slug = slugify(change.value, self._max_length)
            if self._store.get(mapping.target) == slug:
                continue
            self._store.set_value(mapping.target, slug, source=ChangeSource.DERIVED)

    def dispose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
