"""Tests for FormController: validation, dispatch, reset, quick-create and submit."""

import pytest

from pyqt_metaforms.exceptions import FormValidationError, SchemaError
from pyqt_metaforms.forms.field_schema import FieldType, FormFieldOption
from pyqt_metaforms.forms.form_controller import FormController, is_missing_value
from pyqt_metaforms.forms.household import HouseholdOption
from pyqt_metaforms.forms.submit_handler import DEFAULT_CREATE_MESSAGE, MISSING_HANDLER_MESSAGE
from pyqt_metaforms.protocols import ActionErrorBag, ActionResult

from conftest import FakeExecutor

SUBMIT_ACTION = {"id": "funds.save", "kind": "metadata.service"}

FUND_FIELDS = [
    {"name": "name", "label": "Name", "required": True},
    {"name": "code", "label": "Code", "required": True, "deriveSlugFrom": "name"},
    {"name": "isActive", "type": "toggle"},
    {"name": "reason", "label": "Reason", "required": True, "visibleWhen": {"field": "isActive", "isFalsy": True}},
]


def _fund_controller(**kwargs):
    kwargs.setdefault("submit_action", SUBMIT_ACTION)
    return FormController(FUND_FIELDS, {"name": "", "code": "", "isActive": True}, **kwargs)


def test_is_missing_value():
    assert is_missing_value(None)
    assert is_missing_value("   ")
    assert is_missing_value([])
    assert not is_missing_value(False)
    assert not is_missing_value(0)
    assert not is_missing_value("x")


def test_required_fields_block_submit(executor, notifier):
    controller = _fund_controller(executor=executor, notifier=notifier)

    outcome = controller.submit()

    assert not outcome.success
    assert outcome.field_errors == {"name": "Name is required", "code": "Code is required"}
    assert executor.calls == []
    with pytest.raises(FormValidationError):
        controller.raise_for_validation()


def test_hidden_required_field_is_only_validated_when_visible():
    controller = _fund_controller()
    controller.set_value("name", "General")
    assert "reason" not in controller.collect_field_errors()

    controller.set_value("isActive", False)
    assert not controller.is_field_visible("reason")
    assert not controller.validate()
    assert controller.field_errors == {"reason": "Reason is required"}


def test_user_edit_derives_and_locks():
    controller = _fund_controller()
    controller.handle_user_edit("name", "New Fund")
    assert controller.get_value("code") == "new-fund"

    controller.handle_user_edit("code", "nf")
    controller.handle_user_edit("name", "Newer Fund")
    assert controller.get_value("code") == "nf"
    assert controller.derivation.is_manually_edited("code")


def test_programmatic_write_does_not_lock():
    controller = _fund_controller()
    controller.set_value("code", "preset")
    controller.handle_user_edit("name", "Building")
    assert controller.get_value("code") == "building"


def test_user_edit_clears_that_fields_error():
    controller = _fund_controller()
    controller.validate()
    controller.handle_user_edit("name", "General")
    assert "name" not in controller.field_errors
    assert "code" in controller.field_errors


def test_hooks_cannot_reenter_dispatch():
    controller = FormController([{"name": "a"}, {"name": "b"}])
    controller.add_user_edit_hook("a", lambda value: controller.handle_user_edit("b", "nested"))
    controller.handle_user_edit("a", "x")
    assert controller.get_value("a") == "x"
    assert controller.get_value("b") is None


def test_reset_restores_values_and_keeps_locks():
    controller = FormController(FUND_FIELDS[:2], {"name": "Fund", "code": "fund"})
    controller.handle_user_edit("code", "custom")
    controller.handle_user_edit("name", "Other")
    controller.validate()

    controller.reset()

    assert controller.values() == {"name": "Fund", "code": "fund"}
    assert not controller.is_dirty()
    assert controller.field_errors == {}
    controller.handle_user_edit("name", "Third")
    assert controller.get_value("code") == "fund"


def test_successful_submit(notifier, navigator):
    executor = FakeExecutor(ActionResult(success=True, data={"id": "fund-1"}))
    outcomes = []
    controller = _fund_controller(executor=executor, notifier=notifier, navigator=navigator,
                                  mode="create", on_success=outcomes.append)
    controller.handle_user_edit("name", "Missions")

    outcome = controller.submit()

    assert outcome.success
    assert outcome.identifier == "fund-1"
    assert outcomes == [outcome]
    assert executor.calls[0]["input"]["values"]["code"] == "missions"
    assert executor.calls[0]["input"]["mode"] == "create"
    assert notifier.of_kind("success") == [DEFAULT_CREATE_MESSAGE]
    assert not controller.in_flight


def test_failed_submit_keeps_values_and_applies_error_bag(failing_executor, notifier):
    result = ActionResult(
        success=False,
        message="Please fix the highlighted fields",
        errors=ActionErrorBag(field_errors={"code": ["Code already in use"]}),
    )
    controller = _fund_controller(executor=failing_executor("rejected", result=result), notifier=notifier)
    controller.handle_user_edit("name", "General")
    before = controller.values()

    outcome = controller.submit()

    assert not outcome.success
    assert controller.values() == before
    assert controller.field_errors == {"code": "Code already in use"}
    assert controller.form_errors == ["Please fix the highlighted fields"]
    assert notifier.of_kind("error") == ["Please fix the highlighted fields"]
    assert not controller.in_flight


def test_duplicate_submit_is_rejected_while_in_flight(executor):
    controller = _fund_controller(executor=executor)
    controller.handle_user_edit("name", "General")

    payload = controller.prepare_submit()
    assert payload is not None
    assert controller.in_flight
    assert controller.prepare_submit() is None
    assert not controller.submit().success

    controller.finish_submit(controller.execute_submit(payload), payload)
    assert not controller.in_flight
    assert len(executor.calls) == 1


def test_missing_handler(notifier, executor):
    controller = _fund_controller(submit_action=None, executor=executor, notifier=notifier)
    controller.handle_user_edit("name", "General")
    assert not controller.submit().success
    assert notifier.of_kind("error") == [MISSING_HANDLER_MESSAGE]


def test_household_name_edit_demotes_selection(notifier):
    controller = FormController(
        [{"name": "householdId", "type": "hidden"}, {"name": "householdName"}, {"name": "firstName"}],
        {"firstName": "Ann"},
        notifier=notifier,
    )
    household = controller.household
    household.options = [HouseholdOption(key="h-1", id="h-1", name="The Smiths")]
    household.select_by_key("h-1")
    assert controller.get_value("householdId") == "h-1"

    controller.handle_user_edit("householdName", "The Smythes")

    assert controller.get_value("householdId") == ""
    assert controller.get_value("householdName") == "The Smythes"
    assert household.selected_key is None


def test_quick_create_through_controller(notifier):
    executor = FakeExecutor(ActionResult(success=True, data={"value": "youth", "label": "Youth"}))
    controller = FormController(
        [{"name": "ministry", "type": "select", "lookupId": "ministries", "quickCreate": {"label": "Add"},
          "options": [{"label": "Worship", "value": "worship"}]}],
        executor=executor,
        notifier=notifier,
    )
    refreshes = []
    controller.subscribe_fields(lambda: refreshes.append(True))

    assert controller.open_quick_create("ministry")
    controller.quick_create.set_name("Youth")
    controller.quick_create.submit()

    assert controller.get_value("ministry") == "youth"
    assert FormFieldOption(label="Youth", value="youth") in controller.get_field("ministry").options
    assert refreshes == [True]
    assert controller.fields[0].options == (FormFieldOption(label="Worship", value="worship"),)


def test_quick_create_without_lookup_notifies(notifier):
    controller = FormController([{"name": "ministry", "type": "select", "quickCreate": {}}], notifier=notifier)
    assert not controller.open_quick_create("ministry")
    assert len(notifier.of_kind("error")) == 1
    assert not controller.open_quick_create("unknown")


def test_layout_rows_skip_hidden_fields():
    controller = FormController([
        {"name": "a"},
        {"name": "secret", "type": "hidden"},
        {"name": "b", "helperText": "Shown below"},
        {"name": "notes", "type": "textarea", "colSpan": "full"},
    ])
    rows = controller.layout_rows()
    assert [[f.name for f in row] for row in rows] == [["a", "b"], ["notes"]]
    assert controller.helper_map() == {"a": True, "b": True, "notes": False}


def test_from_metadata_sections_lookups_and_tabs():
    tab_changes = []
    controller = FormController.from_metadata(
        {
            "sections": [
                {"fields": [
                    {"name": "firstName", "label": "First name", "required": True},
                    {"name": "status", "type": "select", "lookupId": "statuses", "defaultValue": "active"},
                ]},
                {"fields": [{"name": "firstName", "label": "Duplicate"}]},
            ],
            "lookupOptions": {"statuses": [{"label": "Active", "value": "active"}]},
            "initialValues": {"firstName": "Ada"},
            "mode": "edit",
            "tabs": [{"id": "profile", "label": "Profile"}, {"id": "giving", "label": "Giving"}],
        },
        on_tab_change=tab_changes.append,
    )

    assert [f.name for f in controller.fields] == ["firstName", "status"]
    assert controller.fields[0].label == "First name"
    assert controller.get_field("status").type is FieldType.SELECT
    assert [o.value for o in controller.get_field("status").options] == ["active"]
    assert controller.get_value("status") == "active"
    assert controller.submit_handler.mode == "edit"
    assert controller.current_tab == "profile"

    controller.set_current_tab("giving")
    controller.set_current_tab("giving")
    assert tab_changes == ["giving"]


def test_cyclic_derivation_metadata_is_rejected():
    with pytest.raises(SchemaError):
        FormController([{"name": "a", "deriveSlugFrom": "b"}, {"name": "b", "deriveSlugFrom": "a"}])


def test_abandoned_submit_can_be_retried(executor):
    controller = _fund_controller(executor=executor)
    controller.set_value("name", "General")
    assert controller.prepare_submit() is not None
    assert controller.prepare_submit() is None

    controller.abandon_submit()
    assert not controller.in_flight
    assert controller.submit().success
