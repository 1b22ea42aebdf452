"""Tests for household identity, merge, selection and roster sync."""

from pyqt_metaforms.core.value_store import ChangeSource, FormValueStore
from pyqt_metaforms.exceptions import DirectoryFetchError
from pyqt_metaforms.forms.field_schema import FieldSchema
from pyqt_metaforms.forms.household import (
    MEMBERS_AUTOMATION_NOTE, HouseholdAddress, HouseholdOption, HouseholdReconciler,
    augment_household_field, build_household_key, ensure_member_name_included,
    map_household_row, merge_household_options, synthesize_initial_household,
)

from conftest import FakeDirectory


def _option(key, name, members=(), household_id=None, **kwargs):
    return HouseholdOption(key=key, id=household_id, name=name, members=tuple(members), **kwargs)


def _reconciler(values=None, notifier=None, directory=None):
    store = FormValueStore(values or {})
    return store, HouseholdReconciler(store, notifier=notifier, directory=directory)


def test_household_key():
    assert build_household_key("", "The Smiths") == "name:the smiths"
    assert build_household_key("42", "Anything") == "42"
    assert build_household_key(None, "  MIXED Case ") == "name:mixed case"
    assert build_household_key("  ", None) == "name:"


def test_map_household_row():
    option = map_household_row({
        "id": " ",
        "name": " The Smiths ",
        "member_names": ["Jane", " Jane ", "", None, "Tom"],
        "address_street": "123 Main",
    })
    assert option.key == "name:the smiths"
    assert option.id is None
    assert option.members == ("Jane", "Tom")
    assert option.address == HouseholdAddress(street="123 Main")
    assert map_household_row({"id": "9"}).name == "Unnamed household"


def test_merge_keeps_previous_members_only_when_incoming_is_empty():
    previous = [_option("1", "Zeta", ["Ann"]), _option("2", "Alpha", ["Bob"])]
    incoming = [_option("1", "Zeta Renamed", [], envelope_number="5"), _option("2", "Alpha", ["Cy"])]
    merged = merge_household_options(previous, incoming)

    by_key = {o.key: o for o in merged}
    assert by_key["1"].members == ("Ann",)
    assert by_key["1"].name == "Zeta Renamed"
    assert by_key["1"].envelope_number == "5"
    assert by_key["2"].members == ("Cy",)
    assert [o.name for o in merged] == ["Alpha", "Zeta Renamed"]


def test_ensure_member_name_included_is_case_insensitive():
    assert ensure_member_name_included(["Jane Doe"], "jane doe") == ["Jane Doe"]
    assert ensure_member_name_included(["Jane Doe"], "John Doe") == ["Jane Doe", "John Doe"]
    assert ensure_member_name_included(["Jane Doe"], None) == ["Jane Doe"]


def test_selection_only_fills_empty_address_fields():
    store, reconciler = _reconciler({"addressStreet": "456 Oak", "householdName": "Typed name"})
    option = _option(
        "h-1", "The Smiths", household_id="h-1", envelope_number="117",
        address=HouseholdAddress(street="123 Main", city="Springfield"),
    )
    reconciler.select_household(option)

    assert store.get("addressStreet") == "456 Oak"
    assert store.get("addressCity") == "Springfield"
    assert store.get("householdName") == "The Smiths"
    assert store.get("householdId") == "h-1"
    assert store.get("envelopeNumber") == "117"
    assert store.is_dirty("householdName")


def test_roster_adds_own_name_without_duplicates():
    store, reconciler = _reconciler({"firstName": "Jane", "lastName": "Doe"})
    reconciler.options = [_option("h-2", "Doe Family", ["Jane Doe"], household_id="h-2")]
    reconciler.select_by_key("h-2")
    assert store.get("householdMembers") == ["Jane Doe"]

    store.set_value("firstName", "John", source=ChangeSource.USER)
    assert store.get("householdMembers") == ["Jane Doe", "John Doe"]


def test_roster_without_selection_is_own_name():
    store, reconciler = _reconciler({})
    assert store.get("householdMembers") == []
    store.set_value("firstName", " Ada ")
    store.set_value("lastName", "Lovelace")
    assert store.get("householdMembers") == ["Ada Lovelace"]


def test_unchanged_roster_is_not_rewritten():
    store, reconciler = _reconciler({"firstName": "Ada", "householdMembers": ["Ada"]})
    writes = []
    store.subscribe("householdMembers", writes.append)
    store.set_value("lastName", "")
    assert writes == []
    assert not store.is_dirty("householdMembers")


def test_manual_name_input_demotes_selection():
    store, reconciler = _reconciler({"firstName": "Jane", "lastName": "Doe"})
    reconciler.options = [_option("h-1", "The Smiths", ["Tom Smith"], household_id="h-1")]
    reconciler.select_by_key("h-1")
    assert reconciler.has_selection

    reconciler.handle_manual_name_input("The Smythes")
    assert store.get("householdId") == ""
    assert reconciler.selected_key is None
    assert store.get("householdMembers") == ["Jane Doe"]


def test_id_less_selection_is_tracked_by_key():
    store, reconciler = _reconciler({"firstName": "Ann"})
    reconciler.options = [_option("name:new family", "New Family", ["Bo"])]
    reconciler.select_by_key("name:new family")
    assert store.get("householdId") == ""
    assert store.get("householdMembers") == ["Bo", "Ann"]


def test_select_unknown_key_is_ignored():
    store, reconciler = _reconciler({})
    assert reconciler.select_by_key("missing") is False


def test_clear_selection_empties_household_fields():
    store, reconciler = _reconciler({"firstName": "Ann"})
    reconciler.select_household(_option("h", "Hs", ["Bo"], household_id="h", envelope_number="3",
                                        address=HouseholdAddress(city="Town")))
    reconciler.clear_selection()
    for name in ("householdId", "householdName", "envelopeNumber", "addressCity"):
        assert store.get(name) == ""
    assert store.get("householdMembers") == []


def test_initial_household_is_synthesized():
    values = {
        "householdId": "h-9",
        "householdName": "Existing",
        "householdMembers": ["Old Member"],
        "envelopeNumber": "44",
    }
    option = synthesize_initial_household(values)
    assert option.key == "h-9"
    assert option.members == ("Old Member",)
    assert synthesize_initial_household({}) is None

    store, reconciler = _reconciler(values)
    assert [o.key for o in reconciler.options] == ["h-9"]
    assert reconciler.selected_option().name == "Existing"


def test_directory_failure_degrades_with_one_warning(notifier):
    directory = FakeDirectory(error=DirectoryFetchError("boom"))
    store, reconciler = _reconciler({"householdId": "h-9", "householdName": "Existing"},
                                    notifier=notifier, directory=directory)
    reconciler.load_directory()
    reconciler.load_directory()

    assert notifier.of_kind("warning") == [
        "We couldn't load existing households. You can still enter a new household manually."
    ]
    assert [o.name for o in reconciler.options] == ["Existing"]
    assert not reconciler.is_loading


def test_directory_rows_merge_with_initial_household(household_rows):
    store, reconciler = _reconciler({"householdId": "h-1", "householdName": "Smiths (old)",
                                     "firstName": "Jane", "lastName": "Smith"},
                                    directory=FakeDirectory(household_rows))
    reconciler.load_directory()

    assert [o.name for o in reconciler.options] == ["Doe Family", "The Smiths"]
    assert store.get("householdMembers") == ["Jane Smith", "Tom Smith"]
    assert store.get("householdName") == "Smiths (old)"


def test_last_request_wins(household_rows):
    store, reconciler = _reconciler({})
    first = reconciler.begin_directory_fetch()
    second = reconciler.begin_directory_fetch()

    assert reconciler.apply_directory_rows(second, household_rows[1:])
    assert not reconciler.apply_directory_rows(first, household_rows)
    assert not reconciler.apply_directory_failure(first, RuntimeError("late"))
    assert [o.key for o in reconciler.options] == ["h-2"]


def test_reset_restores_initial_selection():
    values = {"householdId": "h-9", "householdName": "Existing", "householdMembers": ["Old Member"]}
    store, reconciler = _reconciler(values)
    reconciler.clear_selection()
    store.reset()
    reconciler.after_reset()
    assert reconciler.selected_key == "h-9"
    assert store.get("householdMembers") == ["Old Member"]


def test_field_augmentation():
    members = augment_household_field(FieldSchema(name="householdMembers", helper_text="Listed on statements"))
    assert members.read_only and members.disabled
    assert members.helper_text.startswith(MEMBERS_AUTOMATION_NOTE)
    assert augment_household_field(FieldSchema(name="memberId")).read_only
    assert augment_household_field(FieldSchema(name="householdName")).placeholder
    plain = FieldSchema(name="firstName")
    assert augment_household_field(plain) is plain


def test_manual_name_input_demotes_selection_even_for_same_name():
    store, reconciler = _reconciler({"firstName": "Jane"})
    reconciler.options = [_option("h-1", "The Smiths", [], household_id="h-1")]
    reconciler.select_by_key("h-1")

    reconciler.handle_manual_name_input("The Smiths")
    assert reconciler.selected_key is None
    assert store.get("householdId") == ""
