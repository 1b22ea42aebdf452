"""
Form controller: the single owner of one metadata form's state.

The controller composes the pieces that each handle one concern:

    FormValueStore          live values, dirty tracking, change listeners
    DerivationEngine        slug-from-name with a permanent manual-edit lock
    VisibilityTracker       conditional fields
    LearnedOptionRegistry   options added by quick-create this session
    QuickCreateFlow         inline lookup option creation
    HouseholdReconciler     household directory and roster (household forms)
    FamilyReconciler        family memberships (when memberships are present)
    FormSubmitHandler       submit action and outcome interpretation

User edits enter through ``handle_user_edit`` and are routed by the
FieldChangeDispatcher. Programmatic writes go straight to the store.
Nothing here touches Qt; the widgets in ``pyqt_metaforms.widgets`` render a
controller and feed it user input.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pyqt_metaforms.core.value_store import FormValueStore
from pyqt_metaforms.exceptions import FormValidationError, LookupContextError
from pyqt_metaforms.forms.derivation import DerivationEngine
from pyqt_metaforms.forms.family import FAMILY_MEMBERSHIPS_FIELD, FamilyOption, FamilyReconciler
from pyqt_metaforms.forms.field_schema import (
    FieldSchema, apply_lookup_options, flatten_section_fields, parse_fields, validate_field_schemas,
)
from pyqt_metaforms.forms.household import (
    HOUSEHOLD_ID_FIELD, HOUSEHOLD_NAME_FIELD, HouseholdReconciler, augment_household_field,
)
from pyqt_metaforms.forms.layout import build_field_row_helper_map, group_fields_into_rows
from pyqt_metaforms.forms.lookup_options import LearnedOptionRegistry
from pyqt_metaforms.forms.quick_create import QuickCreateFlow, ensure_quick_create_action
from pyqt_metaforms.forms.submit_handler import FormSubmitHandler, SubmitOutcome
from pyqt_metaforms.forms.visibility import VisibilityTracker
from pyqt_metaforms.protocols.action_executor import ActionExecutor, ActionResult, get_action_executor
from pyqt_metaforms.protocols.directory import HouseholdDirectory
from pyqt_metaforms.protocols.notifier import Navigator, Notifier, get_notifier
from pyqt_metaforms.services.field_change_dispatcher import FieldChangeDispatcher, FieldChangeEvent
from pyqt_metaforms.services.flag_context_manager import FlagContextManager, ManagerFlag

logger = logging.getLogger(__name__)

UserEditHook = Callable[[Any], None]


def is_missing_value(value: Any) -> bool:
    """None, blank strings and empty collections count as missing; False does not."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def required_message(schema: FieldSchema) -> str:
    return f"{schema.display_label} is required"


class FormController:
    """Live state, validation and submission for one form instance."""

    def __init__(
        self,
        fields: Sequence[Union[FieldSchema, Mapping[str, Any]]],
        initial_values: Optional[Mapping[str, Any]] = None,
        *,
        submit_action: Optional[Mapping[str, Any]] = None,
        mode: Optional[str] = None,
        lookup_options: Optional[Mapping[str, Any]] = None,
        family_options: Sequence[FamilyOption] = (),
        executor: Optional[ActionExecutor] = None,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
        directory: Optional[HouseholdDirectory] = None,
        context_params: Optional[Mapping[str, Any]] = None,
        role: Optional[str] = None,
        on_success: Optional[Callable[[SubmitOutcome], None]] = None,
        tabs: Sequence[Mapping[str, Any]] = (),
        current_tab: Optional[str] = None,
        on_tab_change: Optional[Callable[[str], None]] = None,
    ):
        # Flags managed through FlagContextManager
        self._in_reset = False
        self._dispatching = False
        self._submitting = False

        schemas = [f if isinstance(f, FieldSchema) else FieldSchema.from_metadata(f) for f in fields]
        validate_field_schemas(schemas)
        self._fields: List[FieldSchema] = apply_lookup_options(schemas, lookup_options)
        self._field_index: Dict[str, FieldSchema] = {f.name: f for f in self._fields}

        self._executor = executor
        self._notifier = notifier
        self.on_success = on_success

        values = dict(initial_values or {})
        for schema in self._fields:
            if schema.name not in values and schema.default_value is not None:
                values[schema.name] = schema.default_value
        self.store = FormValueStore(values)

        self.field_errors: Dict[str, str] = {}
        self.form_errors: List[str] = []
        self._error_listeners: List[Callable[[], None]] = []
        self._fields_listeners: List[Callable[[], None]] = []

        self.derivation = DerivationEngine.from_fields(self.store, self._fields)
        self.visibility = VisibilityTracker(self.store, self._fields)
        self.learned_options = LearnedOptionRegistry()

        action_context = {"params": dict(context_params or {}), "role": role}
        self.quick_create = QuickCreateFlow(
            executor=executor,
            store=self.store,
            learned=self.learned_options,
            notifier=notifier,
            context=action_context,
            on_created=self._on_option_created,
        )

        self.household: Optional[HouseholdReconciler] = None
        if HOUSEHOLD_ID_FIELD in self._field_index or HOUSEHOLD_NAME_FIELD in self._field_index:
            self.household = HouseholdReconciler(self.store, notifier=notifier, directory=directory)

        self.family: Optional[FamilyReconciler] = None
        if FAMILY_MEMBERSHIPS_FIELD in self._field_index or family_options:
            self.family = FamilyReconciler(
                self.store, family_options=family_options, executor=executor, notifier=notifier,
            )

        self.user_edit_hooks: Dict[str, List[UserEditHook]] = {}
        if self.household is not None:
            self.add_user_edit_hook(HOUSEHOLD_NAME_FIELD, self.household.handle_manual_name_input)

        self.submit_handler = FormSubmitHandler(
            submit_action,
            executor=executor,
            notifier=notifier,
            navigator=navigator,
            mode=mode,
            context_params=context_params,
            role=role,
        )

        self.tabs: List[Dict[str, Any]] = [dict(tab) for tab in tabs]
        self.current_tab: Optional[str] = current_tab or (self.tabs[0].get("id") if self.tabs else None)
        self.on_tab_change = on_tab_change

        logger.info(f"FormController created with {len(self._fields)} field(s), mode={mode}")

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any], **kwargs) -> "FormController":
        """
        Build a controller from a metadata form definition.

        Reads ``fields`` or ``sections[].fields``, ``initialValues``,
        ``lookupOptions``, ``submitAction``, ``mode``, ``tabs`` and
        ``familyOptions``. Keyword arguments override the metadata.

        Raises:
            SchemaError: If the field metadata is invalid
        """
        raw_fields = metadata.get("fields")
        if raw_fields is None:
            raw_fields = flatten_section_fields(metadata.get("sections") or ())
        options = dict(
            initial_values=metadata.get("initialValues"),
            submit_action=metadata.get("submitAction"),
            mode=metadata.get("mode"),
            lookup_options=metadata.get("lookupOptions"),
            tabs=metadata.get("tabs") or (),
            family_options=[
                FamilyOption.from_payload(raw) for raw in metadata.get("familyOptions") or ()
            ],
        )
        options.update(kwargs)
        return cls(parse_fields(raw_fields), **options)

    # ------------------------------------------------------------ collaborators

    @property
    def executor(self) -> Optional[ActionExecutor]:
        return self._executor or get_action_executor()

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    # ------------------------------------------------------------------ fields

    @property
    def fields(self) -> List[FieldSchema]:
        """Schema fields as parsed, with lookup map options applied."""
        return list(self._fields)

    def augment_field(self, schema: FieldSchema) -> FieldSchema:
        augmented = self.learned_options.augment(schema)
        quick_create = ensure_quick_create_action(augmented)
        if quick_create is not augmented.quick_create:
            augmented = augmented.with_changes(quick_create=quick_create)
        if self.household is not None:
            augmented = augment_household_field(augmented)
        return augmented

    def augmented_fields(self) -> List[FieldSchema]:
        """Fields as rendered: learned options, synthesized quick-create actions, household rules."""
        return [self.augment_field(schema) for schema in self._fields]

    def get_field(self, name: str) -> Optional[FieldSchema]:
        schema = self._field_index.get(name)
        return self.augment_field(schema) if schema is not None else None

    def layout_rows(self) -> List[List[FieldSchema]]:
        visible_fields = [schema for schema in self.augmented_fields() if not schema.is_hidden_type]
        return group_fields_into_rows(visible_fields)

    def helper_map(self) -> Dict[str, bool]:
        return build_field_row_helper_map(self.layout_rows())

    def is_field_visible(self, name: str) -> bool:
        return self.visibility.is_field_visible(name)

    def subscribe_fields(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Listen for changes of the augmented field list (learned options)."""
        self._fields_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._fields_listeners:
                self._fields_listeners.remove(listener)

        return unsubscribe

    def _emit_fields_changed(self) -> None:
        for listener in list(self._fields_listeners):
            listener()

    # ------------------------------------------------------------------ values

    def get_value(self, name: str, default: Any = None) -> Any:
        return self.store.get(name, default)

    def values(self) -> Dict[str, Any]:
        return self.store.snapshot()

    def set_value(self, name: str, value: Any) -> None:
        """Programmatic write. Does not lock derived fields."""
        self.store.set_value(name, value)

    def handle_user_edit(self, name: str, value: Any) -> None:
        """Entry point for a direct user edit of a rendered control."""
        FieldChangeDispatcher.instance().dispatch(FieldChangeEvent(name, value, self))

    def add_user_edit_hook(self, name: str, hook: UserEditHook) -> None:
        self.user_edit_hooks.setdefault(name, []).append(hook)

    def is_dirty(self, name: Optional[str] = None) -> bool:
        return self.store.is_dirty(name)

    def reset(self, values: Optional[Mapping[str, Any]] = None) -> None:
        """Restore initial values (or adopt ``values``). Manual-edit locks survive."""
        with FlagContextManager.reset_context(self):
            self.store.reset(values)
            if self.household is not None:
                self.household.after_reset()
        self.field_errors.clear()
        self.form_errors.clear()
        self._emit_errors_changed()
        logger.info("Form reset")

    # -------------------------------------------------------------- validation

    def validate_field(self, name: str) -> Optional[str]:
        schema = self._field_index.get(name)
        if schema is None or not schema.required:
            return None
        if not self.visibility.is_field_visible(name):
            return None
        if is_missing_value(self.store.get(name)):
            return required_message(schema)
        return None

    def collect_field_errors(self) -> Dict[str, str]:
        errors = {}
        for schema in self._fields:
            message = self.validate_field(schema.name)
            if message:
                errors[schema.name] = message
        return errors

    def validate(self) -> bool:
        """Validate every field, replacing the field error map. Returns True if valid."""
        self.field_errors = self.collect_field_errors()
        self._emit_errors_changed()
        return not self.field_errors

    def raise_for_validation(self) -> None:
        """
        Raises:
            FormValidationError: If any visible required field is missing
        """
        if not self.validate():
            raise FormValidationError(self.field_errors)

    def clear_field_error(self, name: str) -> None:
        if self.field_errors.pop(name, None) is not None:
            self._emit_errors_changed()

    def subscribe_errors(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Listen for changes of ``field_errors`` or ``form_errors``."""
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    def _emit_errors_changed(self) -> None:
        for listener in list(self._error_listeners):
            listener()

    # ------------------------------------------------------------ quick create

    def open_quick_create(self, name: str) -> bool:
        """Open the quick-create flow for a select field. Notifies and returns False if unavailable."""
        schema = self.get_field(name)
        if schema is None:
            logger.warning(f"Quick create requested for unknown field {name}")
            return False
        try:
            self.quick_create.open(schema)
        except LookupContextError as e:
            logger.warning(f"Quick create unavailable for {name}: {e}")
            self.notifier.error(str(e))
            return False
        return True

    def _on_option_created(self, schema: FieldSchema, option) -> None:
        self.clear_field_error(schema.name)
        self._emit_fields_changed()

    # ------------------------------------------------------------------- tabs

    def set_current_tab(self, tab_id: str) -> None:
        if tab_id == self.current_tab:
            return
        self.current_tab = tab_id
        logger.debug(f"Tab changed to {tab_id}")
        if self.on_tab_change is not None:
            self.on_tab_change(tab_id)

    # ------------------------------------------------------------------ submit

    @property
    def in_flight(self) -> bool:
        return FlagContextManager.is_flag_set(self, ManagerFlag.SUBMITTING)

    def prepare_submit(self) -> Optional[Dict[str, Any]]:
        """
        Validate and mark the submit in flight.

        Returns the action payload, or None when the submit must not run:
        already in flight, required fields missing, or no submit handler.
        """
        if self.in_flight:
            logger.debug("Submit ignored: already in flight")
            return None

        try:
            self.raise_for_validation()
        except FormValidationError as e:
            logger.info(str(e))
            return None

        if not self.submit_handler.has_handler() or self.executor is None:
            self.submit_handler.handle_missing_handler()
            return None

        FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, True)
        self.form_errors = []
        self._emit_errors_changed()
        return self.submit_handler.build_payload(self.store.snapshot())

    def execute_submit(self, payload: Mapping[str, Any]) -> ActionResult:
        """Run the submit action. Safe to call off the GUI thread."""
        return self.submit_handler.execute(payload)

    def finish_submit(self, result: ActionResult, payload: Mapping[str, Any]) -> SubmitOutcome:
        FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, False)
        outcome = self.submit_handler.handle_success(result, payload)
        self.field_errors.clear()
        self.form_errors = []
        self._emit_errors_changed()
        if self.on_success is not None:
            self.on_success(outcome)
        return outcome

    def fail_submit(self, error: Exception) -> SubmitOutcome:
        """Surface a failed submit; values are left untouched for retry."""
        FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, False)
        outcome = self.submit_handler.handle_failure(error)
        self.field_errors.update(outcome.field_errors)
        self.form_errors = list(outcome.form_errors)
        self._emit_errors_changed()
        message = outcome.message or (outcome.form_errors[0] if outcome.form_errors else None)
        if message:
            self.notifier.error(message)
        return outcome

    def abandon_submit(self) -> None:
        """Forget an in-flight submit whose result will never be delivered."""
        if self.in_flight:
            logger.info("Abandoning in-flight submit")
            FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, False)

    def submit(self) -> SubmitOutcome:
        """Validate, execute and interpret inline."""
        payload = self.prepare_submit()
        if payload is None:
            return SubmitOutcome(
                success=False,
                field_errors=dict(self.field_errors),
                form_errors=list(self.form_errors),
            )
        try:
            result = self.execute_submit(payload)
        except Exception as e:
            logger.exception("Form submit failed")
            return self.fail_submit(e)
        return self.finish_submit(result, payload)

    # -------------------------------------------------------------- lifecycle

    def load_household_directory(self) -> None:
        if self.household is not None:
            self.household.load_directory()

    def dispose(self) -> None:
        self.derivation.dispose()
        self.visibility.dispose()
        if self.household is not None:
            self.household.dispose()
        self._error_listeners.clear()
        self._fields_listeners.clear()
        logger.debug("FormController disposed")
