"""
Conditional field visibility.

``is_visible`` is a pure predicate. ``VisibilityTracker`` keeps the live
answer for every conditional field by subscribing to the watched field in
the value store; fields without a condition are never subscribed.
"""

import logging
from numbers import Number
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from pyqt_metaforms.core.value_store import FormValueStore, ValueChange
from pyqt_metaforms.forms.field_schema import FieldSchema, VisibilityCondition

logger = logging.getLogger(__name__)

VisibilityCallback = Callable[[str, bool], None]


def _strict_equals(left: Any, right: Any) -> bool:
    """Equality that never coerces between strings, numbers and booleans."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, Number) and isinstance(right, Number):
        return left == right
    return type(left) is type(right) and left == right


def is_visible(condition: Optional[VisibilityCondition], watched_value: Any) -> bool:
    """Evaluate a condition. Precedence: is_truthy, is_falsy, equals, default visible."""
    if condition is None:
        return True
    if condition.is_truthy:
        return bool(watched_value)
    if condition.is_falsy:
        return not watched_value
    if condition.has_equals:
        return _strict_equals(watched_value, condition.equals)
    return True


class VisibilityTracker:
    """Live visibility of conditional fields bound to a FormValueStore."""

    def __init__(
        self,
        store: FormValueStore,
        fields: Sequence[FieldSchema],
        on_change: Optional[VisibilityCallback] = None,
    ):
        self._store = store
        self._on_change = on_change
        self._conditions: Dict[str, VisibilityCondition] = {}
        self._visible: Dict[str, bool] = {}
        self._unsubscribers: List[Callable[[], None]] = []

        for schema in fields:
            if schema.visible_when is None:
                continue
            condition = schema.visible_when
            self._conditions[schema.name] = condition
            self._visible[schema.name] = is_visible(condition, store.get(condition.field))
            self._unsubscribers.append(
                store.subscribe(condition.field, self._make_listener(schema.name, condition))
            )

        logger.debug(f"Tracking visibility for {len(self._conditions)} conditional field(s)")

    def _make_listener(self, name: str, condition: VisibilityCondition) -> Callable[[ValueChange], None]:
        def listener(change: ValueChange) -> None:
            visible = is_visible(condition, change.value)
            if visible == self._visible.get(name):
                return
            self._visible[name] = visible
            logger.debug(f"Field {name} visibility -> {visible}")
            if self._on_change is not None:
                self._on_change(name, visible)
        return listener

    @property
    def conditional_fields(self) -> Set[str]:
        return set(self._conditions)

    def is_field_visible(self, name: str) -> bool:
        return self._visible.get(name, True)

    def hidden_fields(self) -> Set[str]:
        return {name for name, visible in self._visible.items() if not visible}

    def set_callback(self, on_change: Optional[VisibilityCallback]) -> None:
        self._on_change = on_change

    def dispose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
