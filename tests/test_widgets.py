"""Tests for the PyQt6 form widgets."""

import pytest

from pyqt_metaforms.forms.field_schema import FieldSchema, FieldType, FormFieldOption, QuickCreateConfig
from pyqt_metaforms.forms.form_controller import FormController
from pyqt_metaforms.protocols import ActionErrorBag, ActionResult

from conftest import FakeDirectory, FakeExecutor


FUND_FIELDS = [
    {"name": "name", "label": "Name", "required": True},
    {"name": "code", "label": "Code", "required": True, "deriveSlugFrom": "name"},
    {"name": "isActive", "type": "toggle", "label": "Active"},
    {"name": "reason", "label": "Reason", "visibleWhen": {"field": "isActive", "isFalsy": True}},
]


def _type(control, text):
    """Simulate typing into a line edit."""
    control.setText(text)
    control.textEdited.emit(text)


def _fund_form(executor=None, notifier=None):
    from pyqt_metaforms.widgets import MetadataFormWidget

    controller = FormController(
        FUND_FIELDS,
        {"name": "", "code": "", "isActive": True},
        submit_action={"id": "funds.save", "kind": "metadata.service"},
        executor=executor,
        notifier=notifier,
    )
    return controller, MetadataFormWidget(controller)


def test_no_scroll_controls(qapp):
    """Test no-scroll controls start empty."""
    from pyqt_metaforms.widgets import NoScrollComboBox, NoScrollDateEdit, NoScrollDoubleSpinBox

    assert NoScrollDoubleSpinBox().get_value() is None
    assert NoScrollDateEdit().get_value() is None
    combo = NoScrollComboBox(placeholder="Pick one")
    assert combo.get_value() is None
    assert combo.placeholderText() == "Pick one"


def test_factory_dispatches_on_field_type(qapp):
    """Test FieldWidgetFactory creates the control for each field type."""
    from pyqt_metaforms.protocols.widget_adapters import (
        CheckBoxAdapter, LineEditAdapter, PlainTextEditAdapter, TagsLineEditAdapter,
    )
    from pyqt_metaforms.widgets import FieldWidgetFactory, NoScrollComboBox, NoScrollDoubleSpinBox

    factory = FieldWidgetFactory()
    expected = {
        FieldType.TEXT: LineEditAdapter,
        FieldType.TEXTAREA: PlainTextEditAdapter,
        FieldType.CURRENCY: NoScrollDoubleSpinBox,
        FieldType.SELECT: NoScrollComboBox,
        FieldType.TOGGLE: CheckBoxAdapter,
        FieldType.TAGS: TagsLineEditAdapter,
    }
    for field_type, control_class in expected.items():
        control = factory.create(FieldSchema(name=field_type.value, type=field_type))
        assert isinstance(control, control_class)
        assert control.objectName() == field_type.value

    for field_type in FieldType:
        assert factory.create(FieldSchema(name="x", type=field_type)) is not None


def test_factory_applies_options_placeholder_and_editability(qapp):
    """Test FieldWidgetFactory applies schema presentation settings."""
    from pyqt_metaforms.widgets import FieldWidgetFactory

    factory = FieldWidgetFactory()
    select = factory.create(FieldSchema(
        name="fund", type=FieldType.SELECT, options=(FormFieldOption("General", "general"),),
    ))
    assert select.option_values() == ["general"]

    read_only = factory.create(FieldSchema(name="memberId", read_only=True, placeholder="Assigned"))
    assert read_only.isReadOnly()
    assert read_only.placeholderText() == "Assigned"

    disabled = factory.create(FieldSchema(name="members", type=FieldType.TAGS, disabled=True))
    assert not disabled.isEnabled()


def test_field_editor(qapp):
    """Test FieldEditor label, quick-create button and errors."""
    from pyqt_metaforms.widgets import FieldEditor, FieldWidgetFactory

    schema = FieldSchema(name="ministry", label="Ministry", type=FieldType.SELECT, required=True,
                         lookup_id="ministries", quick_create=QuickCreateConfig(label="Add ministry"))
    editor = FieldEditor(schema, FieldWidgetFactory().create(schema), reserve_helper_space=True)
    requested = []
    editor.quick_create_requested.connect(requested.append)

    assert editor.label.text() == "Ministry *"
    editor.quick_create_button.click()
    assert requested == ["ministry"]
    assert not editor.helper_label.isHidden()

    editor.set_error("Ministry is required")
    assert not editor.error_label.isHidden()
    editor.set_error(None)
    assert editor.error_label.isHidden()

    plain = FieldEditor(FieldSchema(name="notes"), FieldWidgetFactory().create(FieldSchema(name="notes")))
    assert plain.quick_create_button is None
    assert plain.helper_label.isHidden()


def test_form_widget_lays_out_rows(qapp):
    """Test MetadataFormWidget places half-width fields side by side."""
    controller, form = _fund_form()
    assert set(form.editors) == {"name", "code", "isActive", "reason"}
    assert form.grid.getItemPosition(form.grid.indexOf(form.editors["name"]))[:2] == (0, 0)
    assert form.grid.getItemPosition(form.grid.indexOf(form.editors["code"]))[:2] == (0, 1)
    assert form.grid.getItemPosition(form.grid.indexOf(form.editors["isActive"]))[:2] == (1, 0)


def test_typing_derives_code_until_code_is_edited(qapp):
    """Test derived values are mirrored into the code control until it is edited."""
    controller, form = _fund_form()
    name_edit = form.editors["name"].control
    code_edit = form.editors["code"].control

    _type(name_edit, "New Fund")
    assert code_edit.text() == "new-fund"

    _type(code_edit, "nf")
    _type(name_edit, "Newer Fund")
    assert code_edit.text() == "nf"
    assert controller.get_value("code") == "nf"


def test_visibility_toggles_editor(qapp):
    """Test conditional fields follow the watched value."""
    controller, form = _fund_form()
    assert form.editors["reason"].isHidden()

    form.editors["isActive"].control.click()
    assert controller.get_value("isActive") is False
    assert not form.editors["reason"].isHidden()


def test_submit_shows_validation_errors(qapp, executor):
    """Test submit renders inline required-field errors without calling the executor."""
    controller, form = _fund_form(executor=executor)
    assert form.submit() is False
    assert form.editors["name"].error_label.text() == "Name is required"
    assert executor.calls == []


def test_submit_success_and_failure(qapp, notifier):
    """Test submit outcomes reach the submitted signal and the form error label."""
    result = ActionResult(success=False, message="Fund code taken",
                          errors=ActionErrorBag(field_errors={"code": ["Already used"]}))
    from pyqt_metaforms.exceptions import ActionExecutionError

    executor = FakeExecutor(ActionExecutionError("Fund code taken", result=result), ActionResult(success=True))
    controller, form = _fund_form(executor=executor, notifier=notifier)
    outcomes = []
    form.submitted.connect(outcomes.append)
    _type(form.editors["name"].control, "General")

    assert form.submit()
    assert not outcomes[0].success
    assert form.editors["code"].error_label.text() == "Already used"
    assert "Fund code taken" in form.form_error_label.text()
    assert form.submit_button.isEnabled()
    assert controller.get_value("name") == "General"

    assert form.submit()
    assert outcomes[1].success
    assert form.form_error_label.isHidden()


def test_reset_mirrors_initial_values(qapp):
    """Test reset restores control contents."""
    controller, form = _fund_form()
    _type(form.editors["name"].control, "Temp")
    form.reset()
    assert form.editors["name"].control.text() == ""
    assert form.editors["code"].control.text() == ""


def test_quick_create_dialog_updates_select(qapp, notifier):
    """Test the quick-create dialog creates, learns and selects the option."""
    from pyqt_metaforms.widgets import MetadataFormWidget, QuickCreateDialog

    executor = FakeExecutor(ActionResult(success=True, data={}))
    controller = FormController(
        [{"name": "ministry", "type": "select", "lookupId": "ministries", "quickCreate": {},
          "options": [{"label": "Worship", "value": "worship"}]}],
        executor=executor,
        notifier=notifier,
    )
    form = MetadataFormWidget(controller)
    form.editors["ministry"].quick_create_button.click()
    dialog = form.quick_create_dialog
    assert isinstance(dialog, QuickCreateDialog)

    _type(dialog.name_edit, "Youth Ministry")
    assert dialog.code_edit.text() == "youth-ministry"
    dialog.submit()

    combo = form.editors["ministry"].control
    assert combo.option_values() == ["worship", "youth-ministry"]
    assert combo.get_value() == "youth-ministry"
    assert executor.calls[0]["input"] == {"lookupId": "ministries", "name": "Youth Ministry", "code": "youth-ministry"}


def test_quick_create_dialog_requires_open_flow(qapp):
    """Test QuickCreateDialog rejects a closed flow."""
    from pyqt_metaforms.widgets import QuickCreateDialog

    controller = FormController([{"name": "ministry", "type": "select", "lookupId": "ministries"}])
    with pytest.raises(ValueError):
        QuickCreateDialog(controller.quick_create)


def test_household_selector_picks_from_directory(qapp, household_rows):
    """Test the household selector loads the directory and selects by key."""
    from pyqt_metaforms.widgets import MetadataFormWidget

    controller = FormController(
        [{"name": "firstName"}, {"name": "householdName"}, {"name": "householdId", "type": "hidden"},
         {"name": "householdMembers", "type": "tags"}, {"name": "addressCity"}],
        {"firstName": "Jane"},
        directory=FakeDirectory(household_rows),
    )
    form = MetadataFormWidget(controller)
    selector = form.household_selector

    assert selector is not None
    assert [selector.itemText(i) for i in range(selector.count())] == ["Doe Family", "The Smiths"]

    selector.activated.emit(1)
    assert controller.get_value("householdId") == "h-1"
    assert selector.get_value() == "The Smiths"
    assert form.editors["addressCity"].control.text() == "Springfield"
    assert form.editors["householdMembers"].control.text() == "Jane Smith, Tom Smith, Jane"

    selector.lineEdit().setText("Smith Family")
    selector.lineEdit().textEdited.emit("Smith Family")
    assert controller.get_value("householdId") == ""
    assert controller.get_value("householdName") == "Smith Family"


def test_rejecting_dialog_mid_create_keeps_quick_create_usable(qapp, notifier):
    """Test cancelling the dialog while a create runs lets the next dialog submit."""
    from pyqt_metaforms.widgets import MetadataFormWidget

    executor = FakeExecutor(ActionResult(success=True, data={}))
    controller = FormController(
        [{"name": "ministry", "type": "select", "lookupId": "ministries", "quickCreate": {}}],
        executor=executor,
        notifier=notifier,
    )
    form = MetadataFormWidget(controller)
    form.editors["ministry"].quick_create_button.click()
    _type(form.quick_create_dialog.name_edit, "Youth")
    assert controller.quick_create.begin_submit() is not None

    form.quick_create_dialog.reject()
    assert not controller.quick_create.in_flight

    form.editors["ministry"].quick_create_button.click()
    _type(form.quick_create_dialog.name_edit, "Youth Two")
    form.quick_create_dialog.submit()
    assert controller.get_value("ministry") == "youth-two"


def test_closing_form_mid_submit_clears_in_flight(qapp, executor):
    """Test closing the form drops an unfinished submit so the controller can submit again."""
    from PyQt6.QtGui import QCloseEvent

    controller, form = _fund_form(executor=executor)
    _type(form.editors["name"].control, "General")
    assert controller.prepare_submit() is not None
    assert controller.in_flight

    form.closeEvent(QCloseEvent())
    assert not controller.in_flight
    assert controller.prepare_submit() is not None
