"""
Family memberships and primary-address propagation.

The membership list is edited through small pure functions that always
leave exactly one primary membership when the list is not empty. When the
list changes, FamilyReconciler writes it to ``familyMemberships`` and
copies the primary family's address into address fields that are still
empty.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pyqt_metaforms.core.value_store import ChangeSource, FormValueStore
from pyqt_metaforms.forms.household import ADDRESS_FIELDS, is_blank
from pyqt_metaforms.protocols.action_executor import ActionExecutor, execute_action, get_action_executor
from pyqt_metaforms.protocols.form_config import get_form_config
from pyqt_metaforms.protocols.notifier import Notifier, get_notifier

logger = logging.getLogger(__name__)

FAMILY_MEMBERSHIPS_FIELD = "familyMemberships"
DEFAULT_ROLE = "other"

FAMILY_ROLES = (
    "head", "spouse", "parent", "child", "sibling", "dependent",
    "grandparent", "grandchild",
    "uncle", "aunt", "nephew", "niece", "cousin",
    "parent_in_law", "child_in_law", "sibling_in_law",
    "stepparent", "stepchild", "stepsibling",
    "guardian", "ward", "foster_parent", "foster_child",
    "other",
)

# Form address field -> family record key
_FAMILY_ADDRESS_KEYS = {
    ADDRESS_FIELDS["street"]: "address_street",
    ADDRESS_FIELDS["city"]: "address_city",
    ADDRESS_FIELDS["state"]: "address_state",
    ADDRESS_FIELDS["postal_code"]: "address_postal_code",
}


@dataclass(frozen=True)
class FamilyOption:
    """Family directory entry."""
    id: str
    name: str
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None
    member_count: Optional[int] = None

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "FamilyOption":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            address_street=raw.get("address_street"),
            address_city=raw.get("address_city"),
            address_state=raw.get("address_state"),
            address_postal_code=raw.get("address_postal_code"),
            member_count=raw.get("member_count"),
        )


@dataclass(frozen=True)
class FamilyMembership:
    """The edited member's membership in one family."""
    family_id: str
    family_name: str
    role: str = DEFAULT_ROLE
    is_primary: bool = False
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_postal_code: Optional[str] = None

    @classmethod
    def for_family(cls, family: FamilyOption, is_primary: bool = False) -> "FamilyMembership":
        return cls(
            family_id=family.id,
            family_name=family.name,
            is_primary=is_primary,
            address_street=family.address_street,
            address_city=family.address_city,
            address_state=family.address_state,
            address_postal_code=family.address_postal_code,
        )

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "FamilyMembership":
        return cls(
            family_id=str(raw["familyId"]),
            family_name=str(raw.get("familyName") or ""),
            role=raw.get("role") or DEFAULT_ROLE,
            is_primary=bool(raw.get("isPrimary")),
            address_street=raw.get("address_street"),
            address_city=raw.get("address_city"),
            address_state=raw.get("address_state"),
            address_postal_code=raw.get("address_postal_code"),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "familyId": self.family_id,
            "familyName": self.family_name,
            "role": self.role,
            "isPrimary": self.is_primary,
            "address_street": self.address_street,
            "address_city": self.address_city,
            "address_state": self.address_state,
            "address_postal_code": self.address_postal_code,
        }


def _ensure_primary(memberships: List[FamilyMembership]) -> List[FamilyMembership]:
    if memberships and not any(m.is_primary for m in memberships):
        memberships[0] = dataclasses.replace(memberships[0], is_primary=True)
    return memberships


def add_families(
    memberships: Sequence[FamilyMembership],
    families: Sequence[FamilyOption],
) -> List[FamilyMembership]:
    """Append memberships for families not yet joined; first new one is primary if none is."""
    result = list(memberships)
    has_primary = any(m.is_primary for m in result)
    joined = {m.family_id for m in result}
    for family in families:
        if family.id in joined:
            continue
        joined.add(family.id)
        result.append(FamilyMembership.for_family(family, is_primary=not has_primary))
        has_primary = True
    return _ensure_primary(result)


def set_role(memberships: Sequence[FamilyMembership], family_id: str, role: str) -> List[FamilyMembership]:
    if role not in FAMILY_ROLES:
        raise ValueError(f"Unknown family role {role!r}")
    return [
        dataclasses.replace(m, role=role) if m.family_id == family_id else m
        for m in memberships
    ]


def set_primary(memberships: Sequence[FamilyMembership], family_id: str) -> List[FamilyMembership]:
    return [dataclasses.replace(m, is_primary=m.family_id == family_id) for m in memberships]


def remove_membership(memberships: Sequence[FamilyMembership], family_id: str) -> List[FamilyMembership]:
    """Drop one membership; the first remaining one becomes primary if needed."""
    return _ensure_primary([m for m in memberships if m.family_id != family_id])


def primary_membership(memberships: Sequence[FamilyMembership]) -> Optional[FamilyMembership]:
    return next((m for m in memberships if m.is_primary), None)


class FamilyReconciler:
    """Owns the membership list and the family directory of one form."""

    def __init__(
        self,
        store: FormValueStore,
        family_options: Sequence[FamilyOption] = (),
        memberships: Optional[Sequence[FamilyMembership]] = None,
        executor: Optional[ActionExecutor] = None,
        notifier: Optional[Notifier] = None,
    ):
        self._store = store
        self._executor = executor
        self._notifier = notifier
        self.family_options: List[FamilyOption] = list(family_options)
        self._creating = False

        if memberships is None:
            raw = store.get(FAMILY_MEMBERSHIPS_FIELD) or []
            memberships = [FamilyMembership.from_payload(item) for item in raw if isinstance(item, Mapping)]
        else:
            store.set_value(
                FAMILY_MEMBERSHIPS_FIELD,
                [m.to_payload() for m in memberships],
                source=ChangeSource.RECONCILE,
                dirty=False,
            )
        self.memberships: List[FamilyMembership] = list(memberships)

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    @property
    def is_creating(self) -> bool:
        return self._creating

    def find_family(self, family_id: str) -> Optional[FamilyOption]:
        return next((f for f in self.family_options if f.id == family_id), None)

    def update_memberships(self, memberships: Sequence[FamilyMembership]) -> None:
        """Store the new list and fill empty address fields from the primary family."""
        self.memberships = list(memberships)
        self._store.set_value(
            FAMILY_MEMBERSHIPS_FIELD,
            [m.to_payload() for m in self.memberships],
            source=ChangeSource.RECONCILE,
        )

        primary = primary_membership(self.memberships)
        family = self.find_family(primary.family_id) if primary else None
        if family is None:
            return

        for field_name, key in _FAMILY_ADDRESS_KEYS.items():
            value = getattr(family, key)
            current = self._store.get(field_name)
            if value and is_blank(current):
                self._store.set_value(field_name, value, source=ChangeSource.RECONCILE)
                logger.debug(f"Filled {field_name} from primary family {family.name}")

    def add_families(self, family_ids: Sequence[str]) -> None:
        families = [f for f in (self.find_family(i) for i in family_ids) if f is not None]
        self.update_memberships(add_families(self.memberships, families))

    def set_role(self, family_id: str, role: str) -> None:
        self.update_memberships(set_role(self.memberships, family_id, role))

    def set_primary(self, family_id: str) -> None:
        self.update_memberships(set_primary(self.memberships, family_id))

    def remove(self, family_id: str) -> None:
        self.update_memberships(remove_membership(self.memberships, family_id))

    def create_family(self, name: str) -> Optional[FamilyOption]:
        """Create a family by name through the action executor. Returns None on failure."""
        trimmed = (name or "").strip()
        if not trimmed:
            self.notifier.error("Family name is required")
            return None
        if any(f.name.casefold() == trimmed.casefold() for f in self.family_options):
            self.notifier.error("A family with this name already exists")
            return None
        executor = self._executor or get_action_executor()
        if executor is None:
            self.notifier.error("Family creation is not available")
            return None
        if self._creating:
            logger.debug("Family creation already in flight")
            return None

        handler = get_form_config().family_quick_create_handler
        action = {"id": handler, "kind": "metadata.service", "handler": handler}
        self._creating = True
        try:
            result = execute_action(executor, action, input={"name": trimmed}, context={"params": {}})
            data = result.data if isinstance(result.data, Mapping) else {}
            raw_family = data.get("family")
            if not isinstance(raw_family, Mapping):
                raise ValueError(result.message or "Failed to create family")
            family = FamilyOption.from_payload(raw_family)
        except Exception as e:
            logger.exception("Family quick create failed")
            self.notifier.error(str(e) or "Failed to create family")
            return None
        finally:
            self._creating = False

        self.family_options.append(family)
        self.notifier.success(result.message or f'Family "{trimmed}" created successfully')
        logger.info(f"Created family {family.id} ({family.name})")
        return family
