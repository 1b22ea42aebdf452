"""
Household directory reconciliation.

Merges the fetched household directory with the record being edited and
propagates a selected household into the dependent form fields:

- ``householdId`` and ``householdName`` are always written on selection;
- ``envelopeNumber`` and the address subfields are written only when the
  target field is currently empty, so a half-typed address survives a
  reselection;
- ``householdMembers`` is kept equal to the selected household's roster
  plus the record's own full name, and is recomputed whenever the
  household id, first name or last name changes.

Households without a durable id are identified by a synthetic
``name:<normalized name>`` key. Two id-less households sharing a display
name are therefore treated as one.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pyqt_metaforms.core.value_store import ChangeSource, FormValueStore, ValueChange
from pyqt_metaforms.forms.field_schema import FieldSchema
from pyqt_metaforms.protocols.directory import HouseholdDirectory, get_household_directory
from pyqt_metaforms.protocols.form_config import get_form_config
from pyqt_metaforms.protocols.notifier import Notifier, get_notifier

logger = logging.getLogger(__name__)

HOUSEHOLD_ID_FIELD = "householdId"
HOUSEHOLD_NAME_FIELD = "householdName"
HOUSEHOLD_MEMBERS_FIELD = "householdMembers"
ENVELOPE_NUMBER_FIELD = "envelopeNumber"
FIRST_NAME_FIELD = "firstName"
LAST_NAME_FIELD = "lastName"
MEMBER_ID_FIELD = "memberId"

# HouseholdAddress attribute -> form field
ADDRESS_FIELDS: Dict[str, str] = {
    "street": "addressStreet",
    "city": "addressCity",
    "state": "addressState",
    "postal_code": "addressPostal",
}

UNNAMED_HOUSEHOLD = "Unnamed household"
MEMBERS_AUTOMATION_NOTE = "Household members are managed automatically from the selected household."
HOUSEHOLD_NAME_PLACEHOLDER = "Start typing or select a household"


def _clean(value: Any) -> Optional[str]:
    """Trimmed string, or None for non-strings."""
    return value.strip() if isinstance(value, str) else None


def is_blank(value: Any) -> bool:
    """True for None, non-strings and whitespace-only strings."""
    return not (isinstance(value, str) and value.strip())


def normalize_members(value: Any) -> List[str]:
    """Trimmed, non-empty strings from a roster value; anything else is empty."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True)
class HouseholdAddress:
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None

    @property
    def has_any(self) -> bool:
        return any((self.street, self.city, self.state, self.postal_code))


@dataclass(frozen=True)
class HouseholdOption:
    """One household directory entry, identified by ``key``."""
    key: str
    id: Optional[str]
    name: str
    members: Tuple[str, ...] = ()
    envelope_number: Optional[str] = None
    address: Optional[HouseholdAddress] = None


def build_household_key(household_id: Optional[str], name: Optional[str]) -> str:
    """
    Real id when present, otherwise ``"name:" + lowercased trimmed name``.

    Examples:
        >>> build_household_key("42", "Anything")
        '42'
        >>> build_household_key("", "The Smiths")
        'name:the smiths'
    """
    normalized_id = (household_id or "").strip()
    if normalized_id:
        return normalized_id
    return "name:" + (name or "").strip().lower()


def _build_address(street: Any, city: Any, state: Any, postal_code: Any) -> Optional[HouseholdAddress]:
    address = HouseholdAddress(
        street=_clean(street) or None,
        city=_clean(city) or None,
        state=_clean(state) or None,
        postal_code=_clean(postal_code) or None,
    )
    return address if address.has_any else None


def map_household_row(row: Mapping[str, Any]) -> HouseholdOption:
    """Convert a directory row (snake_case) into a HouseholdOption."""
    household_id = _clean(row.get("id")) or ""
    name = _clean(row.get("name")) or ""
    return HouseholdOption(
        key=build_household_key(household_id, name),
        id=household_id or None,
        name=name or UNNAMED_HOUSEHOLD,
        members=_dedupe(normalize_members(row.get("member_names"))),
        envelope_number=_clean(row.get("envelope_number")),
        address=_build_address(
            row.get("address_street"),
            row.get("address_city"),
            row.get("address_state"),
            row.get("address_postal_code"),
        ),
    )


def merge_household_options(
    previous: Sequence[HouseholdOption],
    incoming: Sequence[HouseholdOption],
) -> List[HouseholdOption]:
    """
    Merge by key. Incoming records overwrite everything except an empty
    member list, which keeps the previous roster. Sorted by name.
    """
    merged: Dict[str, HouseholdOption] = {option.key: option for option in previous}
    for option in incoming:
        existing = merged.get(option.key)
        if existing is None:
            merged[option.key] = option
            continue
        members = option.members or existing.members
        merged[option.key] = dataclasses.replace(option, members=_dedupe(members))
    return sorted(merged.values(), key=lambda option: option.name.casefold())


def format_full_name(first_name: Any, last_name: Any) -> Optional[str]:
    """``"first last"`` trimmed, or None when both parts are blank."""
    parts = [part for part in (_clean(first_name), _clean(last_name)) if part]
    return " ".join(parts) or None


def ensure_member_name_included(members: Sequence[str], full_name: Optional[str]) -> List[str]:
    """Append ``full_name`` unless already present (case-insensitive)."""
    normalized = normalize_members(list(members))
    if not full_name:
        return normalized
    folded = full_name.casefold()
    if any(member.casefold() == folded for member in normalized):
        return normalized
    return normalized + [full_name]


def augment_household_field(schema: FieldSchema) -> FieldSchema:
    """Apply the household workspace presentation rules to one field."""
    if schema.name == MEMBER_ID_FIELD:
        return schema.with_changes(read_only=True, disabled=True)

    if schema.name == HOUSEHOLD_MEMBERS_FIELD:
        helper = schema.helper_text or ""
        if MEMBERS_AUTOMATION_NOTE not in helper:
            helper = f"{MEMBERS_AUTOMATION_NOTE} {helper}" if helper else MEMBERS_AUTOMATION_NOTE
        return schema.with_changes(read_only=True, disabled=True, helper_text=helper)

    if schema.name == HOUSEHOLD_NAME_FIELD:
        return schema.with_changes(placeholder=schema.placeholder or HOUSEHOLD_NAME_PLACEHOLDER)

    return schema


def synthesize_initial_household(values: Mapping[str, Any]) -> Optional[HouseholdOption]:
    """Build the edited record's own household from its initial values."""
    household_id = _clean(values.get(HOUSEHOLD_ID_FIELD)) or ""
    name = _clean(values.get(HOUSEHOLD_NAME_FIELD)) or ""
    if not household_id and not name:
        return None
    return HouseholdOption(
        key=build_household_key(household_id, name),
        id=household_id or None,
        name=name or UNNAMED_HOUSEHOLD,
        members=tuple(normalize_members(values.get(HOUSEHOLD_MEMBERS_FIELD))),
        envelope_number=_clean(values.get(ENVELOPE_NUMBER_FIELD)),
        address=_build_address(*(values.get(field_name) for field_name in ADDRESS_FIELDS.values())),
    )


class HouseholdReconciler:
    """Keeps household fields of one FormValueStore in step with the directory."""

    def __init__(
        self,
        store: FormValueStore,
        notifier: Optional[Notifier] = None,
        directory: Optional[HouseholdDirectory] = None,
        initial_values: Optional[Mapping[str, Any]] = None,
    ):
        self._store = store
        self._notifier = notifier
        self._directory = directory
        self.options: List[HouseholdOption] = []
        self.selected_key: Optional[str] = None

        self._request_key = 0
        self._loading = False
        self._warned = False
        self._suspend_sync = False

        values = initial_values if initial_values is not None else store.initial_values
        self.initial_household = synthesize_initial_household(values)
        if self.initial_household is not None:
            self.options = [self.initial_household]
            self.selected_key = self.initial_household.key

        self.seed_from_initial_household()

        self._unsubscribers: List[Callable[[], None]] = [
            store.subscribe(name, self._on_roster_input)
            for name in (HOUSEHOLD_ID_FIELD, FIRST_NAME_FIELD, LAST_NAME_FIELD)
        ]
        self.sync_roster()

    # ---------------------------------------------------------------- queries

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def has_selection(self) -> bool:
        return bool(self.selected_key) or not is_blank(self._store.get(HOUSEHOLD_ID_FIELD))

    def find_option(self, key: str) -> Optional[HouseholdOption]:
        return next((option for option in self.options if option.key == key), None)

    def find_by_id(self, household_id: str) -> Optional[HouseholdOption]:
        return next((option for option in self.options if (option.id or "") == household_id), None)

    def selected_option(self) -> Optional[HouseholdOption]:
        household_id = _clean(self._store.get(HOUSEHOLD_ID_FIELD)) or ""
        if household_id:
            return self.find_by_id(household_id)
        return self.find_option(self.selected_key) if self.selected_key else None

    # ------------------------------------------------------------- writes

    def _write(self, field_name: str, value: Any, dirty: bool) -> None:
        self._store.set_value(field_name, value, source=ChangeSource.RECONCILE, dirty=dirty)

    def _write_if_empty(self, field_name: str, value: Optional[str], dirty: bool) -> bool:
        if not value or not is_blank(self._store.get(field_name)):
            return False
        self._write(field_name, value, dirty)
        return True

    def set_members(self, members: Sequence[str], dirty: bool = False) -> bool:
        """Write the roster unless it already equals ``members``."""
        current = normalize_members(self._store.get(HOUSEHOLD_MEMBERS_FIELD))
        proposed = normalize_members(list(members))
        if current == proposed and HOUSEHOLD_MEMBERS_FIELD in self._store:
            return False
        self._write(HOUSEHOLD_MEMBERS_FIELD, proposed, dirty)
        return True

    def _own_name(self) -> Optional[str]:
        return format_full_name(self._store.get(FIRST_NAME_FIELD), self._store.get(LAST_NAME_FIELD))

    def seed_from_initial_household(self) -> None:
        """Fill empty household fields from the initial household without dirtying them."""
        if HOUSEHOLD_ID_FIELD not in self._store:
            self._write(HOUSEHOLD_ID_FIELD, "", dirty=False)

        household = self.initial_household
        if household is None:
            return

        self._write_if_empty(HOUSEHOLD_NAME_FIELD, household.name, dirty=False)
        self._write_if_empty(ENVELOPE_NUMBER_FIELD, household.envelope_number, dirty=False)
        if household.address is not None:
            for attr, field_name in ADDRESS_FIELDS.items():
                self._write_if_empty(field_name, getattr(household.address, attr), dirty=False)

        if not normalize_members(self._store.get(HOUSEHOLD_MEMBERS_FIELD)) and household.members:
            self.set_members(ensure_member_name_included(household.members, self._own_name()), dirty=False)

    def select_household(self, option: HouseholdOption) -> None:
        """Propagate a chosen household into the form."""
        logger.info(f"Household selected: {option.name} ({option.key})")
        self.selected_key = option.key
        self._suspend_sync = True
        try:
            self._write(HOUSEHOLD_ID_FIELD, option.id or "", dirty=True)
            self._write(HOUSEHOLD_NAME_FIELD, option.name, dirty=True)
            self._write_if_empty(ENVELOPE_NUMBER_FIELD, option.envelope_number, dirty=True)
            if option.address is not None:
                for attr, field_name in ADDRESS_FIELDS.items():
                    self._write_if_empty(field_name, getattr(option.address, attr), dirty=True)
        finally:
            self._suspend_sync = False
        self.set_members(ensure_member_name_included(option.members, self._own_name()), dirty=True)

    def select_by_key(self, key: str) -> bool:
        option = self.find_option(key)
        if option is None:
            logger.warning(f"No household with key {key!r}")
            return False
        self.select_household(option)
        return True

    def handle_manual_name_input(self, value: Any = None) -> None:
        """Typing a household name demotes any selection to free text."""
        if not self.has_selection:
            return
        logger.debug("Manual household name input; clearing selection")
        self.selected_key = None
        self._write(HOUSEHOLD_ID_FIELD, "", dirty=True)

    def clear_selection(self) -> None:
        """Empty the household id, name, envelope, address and roster."""
        self.selected_key = None
        self._suspend_sync = True
        try:
            self._write(HOUSEHOLD_ID_FIELD, "", dirty=True)
            self._write(HOUSEHOLD_NAME_FIELD, "", dirty=True)
            self._write(ENVELOPE_NUMBER_FIELD, "", dirty=True)
            for field_name in ADDRESS_FIELDS.values():
                self._write(field_name, "", dirty=True)
        finally:
            self._suspend_sync = False
        self.set_members([], dirty=True)

    # ------------------------------------------------------------- roster

    def _on_roster_input(self, change: ValueChange) -> None:
        if change.is_reset:
            return
        self.sync_roster()

    def sync_roster(self) -> None:
        """Recompute ``householdMembers`` from the selection and own name."""
        if self._suspend_sync:
            return

        household_id = _clean(self._store.get(HOUSEHOLD_ID_FIELD)) or ""
        if household_id:
            selected = self.find_by_id(household_id)
        elif self.selected_key:
            selected = self.find_option(self.selected_key)
        else:
            own_name = self._own_name()
            self.set_members([own_name] if own_name else [], dirty=False)
            return

        # A selection missing from the directory leaves the roster untouched
        if selected is not None:
            self.set_members(ensure_member_name_included(selected.members, self._own_name()), dirty=False)

    def after_reset(self) -> None:
        """Restore the initial selection after the store was reset."""
        self.selected_key = self.initial_household.key if self.initial_household else None
        self.seed_from_initial_household()
        self.sync_roster()

    # ---------------------------------------------------------- directory

    def begin_directory_fetch(self) -> int:
        """Start a fetch and return its request key. Only the latest key is applied."""
        self._request_key += 1
        self._loading = True
        logger.debug(f"Household directory fetch #{self._request_key} started")
        return self._request_key

    def apply_directory_rows(self, request_key: int, rows: Iterable[Mapping[str, Any]]) -> bool:
        if request_key != self._request_key:
            logger.debug(f"Ignoring stale household directory response #{request_key}")
            return False
        self._loading = False
        mapped = [map_household_row(row) for row in rows if isinstance(row, Mapping)]
        self.options = merge_household_options(self.options, mapped)
        logger.info(f"Household directory loaded: {len(mapped)} rows, {len(self.options)} options")
        self.sync_roster()
        return True

    def apply_directory_failure(self, request_key: int, error: Exception) -> bool:
        if request_key != self._request_key:
            logger.debug(f"Ignoring stale household directory failure #{request_key}")
            return False
        self._loading = False
        logger.warning(f"Household directory unavailable, manual entry only: {error}")
        if not self._warned:
            self._warned = True
            self.notifier.warning(get_form_config().directory_failure_message)
        return True

    def resolve_directory(self) -> Optional[HouseholdDirectory]:
        return self._directory or get_household_directory()

    def load_directory(self) -> None:
        """Fetch and apply the directory inline."""
        directory = self.resolve_directory()
        if directory is None:
            logger.debug("No household directory registered; manual entry only")
            return
        request_key = self.begin_directory_fetch()
        try:
            rows = directory.fetch_households()
        except Exception as e:
            self.apply_directory_failure(request_key, e)
            return
        self.apply_directory_rows(request_key, rows)

    def dispose(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
