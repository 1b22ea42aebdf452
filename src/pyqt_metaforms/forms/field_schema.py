"""
Field schema types for metadata-driven forms.

Metadata arrives from the backend as camelCase dictionaries. FieldSchema
turns each one into an immutable value object so that layout, visibility,
derivation and lookup logic never touch raw dictionaries:

    fields = [FieldSchema.from_metadata(raw) for raw in metadata["fields"]]
    validate_field_schemas(fields)

Schemas are immutable per render pass; augmentation (learned lookup
options, synthesized quick-create actions) produces new instances through
``with_changes``.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pyqt_metaforms.exceptions import SchemaError

logger = logging.getLogger(__name__)


class FieldType(Enum):
    """Control kinds a field can declare."""
    TEXT = "text"
    TEXTAREA = "textarea"
    MULTILINE = "multiline"
    EMAIL = "email"
    TEL = "tel"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    SELECT = "select"
    TOGGLE = "toggle"
    CHECKBOX = "checkbox"
    TAGS = "tags"
    HIDDEN = "hidden"
    IMAGE = "image"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "FieldType":
        if not raw:
            return cls.TEXT
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            logger.warning(f"Unknown field type {raw!r}; rendering as text")
            return cls.TEXT


class ColSpan(Enum):
    """Horizontal span of a field inside a two-unit row."""
    HALF = "half"
    THIRD = "third"
    FULL = "full"

    @property
    def units(self) -> int:
        return 2 if self is ColSpan.FULL else 1

    @classmethod
    def parse(cls, raw: Optional[str]) -> "ColSpan":
        if not raw:
            return cls.HALF
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise SchemaError(f"Unknown colSpan {raw!r}") from None


@dataclass(frozen=True)
class FormFieldOption:
    """Selectable option. ``value`` is the identity, ``label`` is cosmetic."""
    label: str
    value: str

    @classmethod
    def from_metadata(cls, raw: Any) -> Optional["FormFieldOption"]:
        """Build from ``{label, value}``; returns None for unusable entries."""
        if isinstance(raw, FormFieldOption):
            return raw
        if not isinstance(raw, Mapping):
            return None
        value = raw.get("value")
        label = raw.get("label")
        if value is None:
            return None
        value = str(value).strip()
        label = str(label).strip() if label is not None else value
        if not value or not label:
            return None
        return cls(label=label, value=value)


def normalize_options(raw_options: Optional[Iterable[Any]]) -> Tuple[FormFieldOption, ...]:
    """Trim labels and values and drop entries where either is empty."""
    normalized = []
    for raw in raw_options or ():
        option = FormFieldOption.from_metadata(raw)
        if option is not None:
            normalized.append(option)
    return tuple(normalized)


_UNSET = object()


@dataclass(frozen=True)
class VisibilityCondition:
    """
    Condition on another field's value.

    Only one kind is expected; when several are set, ``is_truthy`` wins over
    ``is_falsy`` which wins over ``equals``. ``has_equals`` distinguishes an
    explicit ``equals: None`` from no equality check at all.
    """
    field: str
    is_truthy: bool = False
    is_falsy: bool = False
    equals: Any = None
    has_equals: bool = False

    @classmethod
    def from_metadata(cls, raw: Mapping[str, Any]) -> "VisibilityCondition":
        watched = raw.get("field")
        if not isinstance(watched, str) or not watched.strip():
            raise SchemaError(f"visibleWhen requires a field name: {dict(raw)!r}")
        equals = raw.get("equals", _UNSET)
        return cls(
            field=watched.strip(),
            is_truthy=bool(raw.get("isTruthy")),
            is_falsy=bool(raw.get("isFalsy")),
            equals=None if equals is _UNSET else equals,
            has_equals=equals is not _UNSET,
        )


@dataclass(frozen=True)
class QuickCreateConfig:
    """Inline creation descriptor for a lookup-backed select field."""
    label: Optional[str] = None
    description: Optional[str] = None
    submit_label: Optional[str] = None
    success_message: Optional[str] = None
    action: Optional[Dict[str, Any]] = None

    @classmethod
    def from_metadata(cls, raw: Mapping[str, Any]) -> "QuickCreateConfig":
        action = raw.get("action")
        return cls(
            label=raw.get("label"),
            description=raw.get("description"),
            submit_label=raw.get("submitLabel"),
            success_message=raw.get("successMessage"),
            action=dict(action) if isinstance(action, Mapping) else None,
        )


@dataclass(frozen=True)
class FieldSchema:
    """Immutable description of one form field."""
    name: str
    type: FieldType = FieldType.TEXT
    label: Optional[str] = None
    required: bool = False
    col_span: ColSpan = ColSpan.HALF
    visible_when: Optional[VisibilityCondition] = None
    derive_slug_from: Optional[str] = None
    lookup_id: Optional[str] = None
    options: Tuple[FormFieldOption, ...] = ()
    quick_create: Optional[QuickCreateConfig] = None
    placeholder: Optional[str] = None
    helper_text: Optional[str] = None
    read_only: bool = False
    disabled: bool = False
    rows: Optional[int] = None
    default_value: Any = None

    @property
    def display_label(self) -> str:
        return self.label or self.name

    @property
    def has_helper_text(self) -> bool:
        return bool(self.helper_text and self.helper_text.strip())

    @property
    def is_hidden_type(self) -> bool:
        return self.type is FieldType.HIDDEN

    def with_changes(self, **changes: Any) -> "FieldSchema":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_metadata(cls, raw: Mapping[str, Any]) -> "FieldSchema":
        """
        Build a schema from a metadata dictionary.

        Raises:
            SchemaError: If the name is missing or a nested descriptor is malformed
        """
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SchemaError(f"Field metadata requires a name: {dict(raw)!r}")

        visible_when = raw.get("visibleWhen")
        quick_create = raw.get("quickCreate")
        lookup_id = raw.get("lookupId")
        derive_from = raw.get("deriveSlugFrom")

        return cls(
            name=name.strip(),
            type=FieldType.parse(raw.get("type")),
            label=raw.get("label"),
            required=raw.get("required") is True,
            col_span=ColSpan.parse(raw.get("colSpan")),
            visible_when=VisibilityCondition.from_metadata(visible_when) if isinstance(visible_when, Mapping) else None,
            derive_slug_from=derive_from.strip() if isinstance(derive_from, str) and derive_from.strip() else None,
            lookup_id=lookup_id.strip() if isinstance(lookup_id, str) and lookup_id.strip() else None,
            options=normalize_options(raw.get("options")),
            quick_create=QuickCreateConfig.from_metadata(quick_create) if isinstance(quick_create, Mapping) else None,
            placeholder=raw.get("placeholder"),
            helper_text=raw.get("helperText") or raw.get("description"),
            read_only=raw.get("readOnly") is True,
            disabled=raw.get("disabled") is True,
            rows=raw.get("rows"),
            default_value=raw.get("defaultValue"),
        )


def validate_field_schemas(fields: Sequence[FieldSchema]) -> None:
    """
    Check form-level invariants.

    Raises:
        SchemaError: On duplicate names or a derivation chain that loops back on itself
    """
    seen = set()
    for schema in fields:
        if schema.name in seen:
            raise SchemaError(f"Duplicate field name {schema.name!r}")
        seen.add(schema.name)
        if schema.derive_slug_from == schema.name:
            raise SchemaError(f"Field {schema.name!r} cannot derive its value from itself")

    derives_from = {schema.name: schema.derive_slug_from for schema in fields if schema.derive_slug_from}
    for start in derives_from:
        chain = [start]
        current = derives_from[start]
        while current in derives_from:
            if current in chain:
                cycle = " <- ".join(chain[chain.index(current):] + [current])
                raise SchemaError(f"Derivation cycle: {cycle}")
            chain.append(current)
            current = derives_from[current]


def flatten_section_fields(sections: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten ``sections[].fields[]`` into one list, first occurrence of a name wins."""
    flattened: List[Dict[str, Any]] = []
    seen = set()
    for section in sections:
        for raw in section.get("fields") or ():
            name = raw.get("name") if isinstance(raw, Mapping) else None
            if not name or name in seen:
                continue
            seen.add(name)
            flattened.append(dict(raw))
    return flattened


def apply_lookup_options(
    fields: Sequence[FieldSchema],
    lookup_options: Optional[Mapping[str, Iterable[Any]]],
) -> List[FieldSchema]:
    """
    Replace a field's options with the lookup map entry for its ``lookup_id``.

    Fields keep their schema options when the map has no non-empty
    normalized list for their lookup.
    """
    if not lookup_options:
        return list(fields)

    normalized = {key: normalize_options(raw) for key, raw in lookup_options.items()}
    result = []
    for schema in fields:
        options = normalized.get(schema.lookup_id) if schema.lookup_id else None
        result.append(schema.with_changes(options=options) if options else schema)
    return result


def parse_fields(raw_fields: Iterable[Mapping[str, Any]]) -> List[FieldSchema]:
    """Parse and validate a list of field metadata dictionaries."""
    fields = [FieldSchema.from_metadata(raw) for raw in raw_fields]
    validate_field_schemas(fields)
    return fields
