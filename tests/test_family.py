"""Tests for family memberships and primary-address propagation."""

import pytest

from pyqt_metaforms.core.value_store import FormValueStore
from pyqt_metaforms.exceptions import ActionExecutionError
from pyqt_metaforms.forms.family import (
    FAMILY_MEMBERSHIPS_FIELD, FamilyMembership, FamilyOption, FamilyReconciler,
    add_families, primary_membership, remove_membership, set_primary, set_role,
)
from pyqt_metaforms.protocols import ActionResult

from conftest import FakeExecutor

SMITHS = FamilyOption(id="f-1", name="Smiths", address_street="1 Elm", address_city="Town",
                      address_state="TX", address_postal_code="75001")
JONES = FamilyOption(id="f-2", name="Jones", address_street="9 Pine")


def test_first_added_family_becomes_primary():
    memberships = add_families([], [SMITHS, JONES, SMITHS])
    assert [m.family_id for m in memberships] == ["f-1", "f-2"]
    assert [m.is_primary for m in memberships] == [True, False]


def test_existing_primary_is_kept_when_adding():
    memberships = add_families([FamilyMembership("f-2", "Jones", is_primary=True)], [SMITHS])
    assert primary_membership(memberships).family_id == "f-2"


def test_set_role_and_primary():
    memberships = add_families([], [SMITHS, JONES])
    memberships = set_role(memberships, "f-2", "child")
    memberships = set_primary(memberships, "f-2")
    assert memberships[1].role == "child"
    assert primary_membership(memberships).family_id == "f-2"
    assert not memberships[0].is_primary
    with pytest.raises(ValueError):
        set_role(memberships, "f-1", "landlord")


def test_removing_primary_promotes_first_remaining():
    memberships = add_families([], [SMITHS, JONES])
    memberships = remove_membership(memberships, "f-1")
    assert [(m.family_id, m.is_primary) for m in memberships] == [("f-2", True)]
    assert remove_membership(memberships, "f-2") == []


def test_membership_payload_round_trip_uses_camel_case():
    membership = FamilyMembership.for_family(SMITHS, is_primary=True)
    payload = membership.to_payload()
    assert payload["familyId"] == "f-1"
    assert payload["isPrimary"] is True
    assert FamilyMembership.from_payload(payload) == membership


def test_primary_address_fills_only_empty_fields():
    store = FormValueStore({"addressStreet": "Typed street", "addressCity": ""})
    reconciler = FamilyReconciler(store, family_options=[SMITHS, JONES])
    reconciler.add_families(["f-1"])

    assert store.get("addressStreet") == "Typed street"
    assert store.get("addressCity") == "Town"
    assert store.get("addressState") == "TX"
    assert store.get("addressPostal") == "75001"
    assert store.get(FAMILY_MEMBERSHIPS_FIELD)[0]["familyId"] == "f-1"


def test_whitespace_address_counts_as_empty():
    store = FormValueStore({"addressStreet": "   ", "addressCity": "Typed city"})
    reconciler = FamilyReconciler(store, family_options=[SMITHS])
    reconciler.add_families(["f-1"])

    assert store.get("addressStreet") == "1 Elm"
    assert store.get("addressCity") == "Typed city"


def test_changing_primary_does_not_overwrite_filled_address():
    store = FormValueStore({})
    reconciler = FamilyReconciler(store, family_options=[SMITHS, JONES])
    reconciler.add_families(["f-1", "f-2"])
    reconciler.set_primary("f-2")
    assert store.get("addressStreet") == "1 Elm"


def test_memberships_are_read_from_initial_values():
    store = FormValueStore({FAMILY_MEMBERSHIPS_FIELD: [
        {"familyId": "f-2", "familyName": "Jones", "role": "spouse", "isPrimary": True},
    ]})
    reconciler = FamilyReconciler(store, family_options=[SMITHS, JONES])
    assert reconciler.memberships[0].role == "spouse"
    assert not store.is_dirty()


def test_create_family(notifier):
    executor = FakeExecutor(ActionResult(success=True, data={"family": {"id": "f-3", "name": "Lee"}}))
    reconciler = FamilyReconciler(FormValueStore({}), family_options=[SMITHS], executor=executor, notifier=notifier)

    family = reconciler.create_family("  Lee ")

    assert family == FamilyOption(id="f-3", name="Lee")
    assert reconciler.find_family("f-3") == family
    call = executor.calls[0]
    assert call["input"] == {"name": "Lee"}
    assert call["action"]["handler"] == "admin-community.families.quickCreate"
    assert notifier.of_kind("success") == ['Family "Lee" created successfully']


def test_create_family_rejections(notifier):
    reconciler = FamilyReconciler(FormValueStore({}), family_options=[SMITHS], notifier=notifier)
    assert reconciler.create_family("  ") is None
    assert reconciler.create_family("smiths") is None
    assert reconciler.create_family("Brand New") is None
    assert notifier.of_kind("error") == [
        "Family name is required",
        "A family with this name already exists",
        "Family creation is not available",
    ]


def test_create_family_failure(notifier):
    executor = FakeExecutor(ActionExecutionError("Server said no"))
    reconciler = FamilyReconciler(FormValueStore({}), executor=executor, notifier=notifier)
    assert reconciler.create_family("Lee") is None
    assert notifier.of_kind("error") == ["Server said no"]
    assert not reconciler.is_creating
