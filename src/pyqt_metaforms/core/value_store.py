"""
Observable field-value store.

FormValueStore is the single source of truth for a form's values. Every
committed write produces a ValueChange that is delivered synchronously, in
write order, to the listeners registered for that field and then to the
global listeners.

Reactors (derivation, visibility, household reconciliation) are plain
listeners, so nothing depends on a particular reactive framework:

    store = FormValueStore({"name": ""})
    unsubscribe = store.subscribe("name", lambda change: print(change.value))
    store.set_value("name", "New Fund", source=ChangeSource.USER)
    unsubscribe()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Set

logger = logging.getLogger(__name__)


class ChangeSource(Enum):
    """Origin of a value write."""
    USER = "user"                  # Typed/selected by the user in a control
    DERIVED = "derived"            # Computed by the derivation engine
    RECONCILE = "reconcile"        # Household/family propagation
    PROGRAMMATIC = "programmatic"  # Caller or controller write
    RESET = "reset"                # Store reset back to initial values


@dataclass(frozen=True)
class ValueChange:
    """Immutable record of one committed write."""
    field_name: str
    value: Any
    previous: Any
    source: ChangeSource

    @property
    def is_reset(self) -> bool:
        return self.source is ChangeSource.RESET


Listener = Callable[[ValueChange], None]


class FormValueStore:
    """Mapping of field name to value with per-field and global subscriptions."""

    def __init__(self, initial_values: Optional[Mapping[str, Any]] = None):
        self._initial: Dict[str, Any] = dict(initial_values or {})
        self._values: Dict[str, Any] = dict(self._initial)
        self._dirty: Set[str] = set()
        self._field_listeners: Dict[str, List[Listener]] = {}
        self._global_listeners: List[Listener] = []

    def __contains__(self, field_name: str) -> bool:
        return field_name in self._values

    def get(self, field_name: str, default: Any = None) -> Any:
        return self._values.get(field_name, default)

    def snapshot(self) -> Dict[str, Any]:
        """Shallow copy of all current values."""
        return dict(self._values)

    @property
    def initial_values(self) -> Dict[str, Any]:
        return dict(self._initial)

    @property
    def dirty_fields(self) -> FrozenSet[str]:
        return frozenset(self._dirty)

    def is_dirty(self, field_name: Optional[str] = None) -> bool:
        if field_name is None:
            return bool(self._dirty)
        return field_name in self._dirty

    def set_value(
        self,
        field_name: str,
        value: Any,
        *,
        source: ChangeSource = ChangeSource.PROGRAMMATIC,
        dirty: bool = True,
    ) -> ValueChange:
        """Commit a write and notify listeners before returning."""
        previous = self._values.get(field_name)
        self._values[field_name] = value
        if dirty:
            self._dirty.add(field_name)

        change = ValueChange(field_name=field_name, value=value, previous=previous, source=source)
        logger.debug(f"store write [{source.value}] {field_name} = {repr(value)[:60]}")
        self._notify(change)
        return change

    def reset(self, values: Optional[Mapping[str, Any]] = None) -> None:
        """Restore initial values (or adopt ``values`` as the new baseline)."""
        if values is not None:
            self._initial = dict(values)

        stale = [name for name in self._values if name not in self._initial]
        self._dirty.clear()
        for name in stale:
            previous = self._values.pop(name)
            self._notify(ValueChange(name, None, previous, ChangeSource.RESET))
        for name, value in self._initial.items():
            previous = self._values.get(name)
            self._values[name] = value
            self._notify(ValueChange(name, value, previous, ChangeSource.RESET))

    def subscribe(self, field_name: str, listener: Listener) -> Callable[[], None]:
        """Listen to writes of one field. Returns an unsubscribe callable."""
        listeners = self._field_listeners.setdefault(field_name, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        """Listen to every write. Returns an unsubscribe callable."""
        self._global_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._global_listeners:
                self._global_listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: ValueChange) -> None:
        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._field_listeners.get(change.field_name, ())):
            listener(change)
        for listener in list(self._global_listeners):
            listener(change)
