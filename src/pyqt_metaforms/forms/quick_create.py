"""
Inline creation of lookup options from a select field.

State machine::

    IDLE -> OPEN(field) -> SUCCEEDED(option)
                        -> CANCELLED
    (a failed submit stays OPEN with ``error_message`` set)

The sub-form has two values, ``name`` and ``code``. ``code`` follows
``slugify(name)`` through its own DerivationEngine until the user types
into it, exactly like a derived field on the main form.

Submission is split into begin/execute/complete so the widget layer can
run ``execute`` on a background thread; ``submit`` runs all three inline.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from pyqt_metaforms.core.value_store import ChangeSource, FormValueStore
from pyqt_metaforms.exceptions import ActionExecutionError, LookupContextError
from pyqt_metaforms.forms.derivation import DerivationEngine, DerivationMapping
from pyqt_metaforms.forms.field_schema import FieldSchema, FormFieldOption, QuickCreateConfig
from pyqt_metaforms.forms.lookup_options import LearnedOptionRegistry
from pyqt_metaforms.protocols.action_executor import (
    ActionExecutor, ActionResult, execute_action, get_action_executor,
)
from pyqt_metaforms.protocols.form_config import get_form_config
from pyqt_metaforms.protocols.notifier import Notifier, get_notifier
from pyqt_metaforms.services.flag_context_manager import FlagContextManager, ManagerFlag

logger = logging.getLogger(__name__)

MISSING_LOOKUP_MESSAGE = "Unable to determine the lookup context."
UNAVAILABLE_MESSAGE = "Quick add is not available for this field."
DEFAULT_SUCCESS_MESSAGE = "Option created."
DEFAULT_FAILURE_MESSAGE = "Unable to create the option. Please try again."

NAME_FIELD = "name"
CODE_FIELD = "code"


class QuickCreateState(Enum):
    IDLE = "idle"
    OPEN = "open"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"


def ensure_quick_create_action(
    schema: FieldSchema,
    handler: Optional[str] = None,
) -> Optional[QuickCreateConfig]:
    """
    Return the field's quick-create descriptor with an action.

    A descriptor without an action gets a synthesized ``metadata.service``
    action for the field's lookup. Fields without a descriptor, or without
    a lookup id to parameterize the action, are returned unchanged.
    """
    quick_create = schema.quick_create
    if quick_create is None or quick_create.action:
        return quick_create
    if not schema.lookup_id:
        return quick_create

    action = {
        "id": f"quick-create-{schema.lookup_id}",
        "kind": "metadata.service",
        "config": {
            "handler": handler or get_form_config().lookup_create_handler,
            "lookupId": schema.lookup_id,
        },
    }
    return QuickCreateConfig(
        label=quick_create.label,
        description=quick_create.description,
        submit_label=quick_create.submit_label,
        success_message=quick_create.success_message,
        action=action,
    )


def _non_empty(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def extract_created_option(data: Any, fallback_value: str, fallback_label: str) -> FormFieldOption:
    """
    Read ``{value, label}`` from a create response.

    Looks at the payload itself and then under ``option``, ``data`` and
    ``item``. Falls back to ``{value: code, label: name}``.
    """
    candidates = []
    if isinstance(data, Mapping):
        candidates.append(data)
        for key in ("option", "data", "item"):
            nested = data.get(key)
            if isinstance(nested, Mapping):
                candidates.append(nested)

    for candidate in candidates:
        value = _non_empty(candidate.get("value"))
        if value:
            label = _non_empty(candidate.get("label")) or fallback_label
            return FormFieldOption(label=label, value=value)

    logger.debug("Create response had no option shape; using submitted code/name")
    return FormFieldOption(label=fallback_label, value=fallback_value)


@dataclass(frozen=True)
class PendingCreate:
    """The field and action a submitted create belongs to."""
    field: FieldSchema
    config: QuickCreateConfig
    payload: Dict[str, str]


class QuickCreateFlow:
    """
    One quick-create session bound to the main form's store and learned options.

    A submitted create is remembered as a PendingCreate. ``complete`` and
    ``fail`` only act on the payload of that pending create, so a result that
    arrives after a cancel or a reopen is dropped.
    """

    def __init__(
        self,
        executor: Optional[ActionExecutor],
        store: FormValueStore,
        learned: LearnedOptionRegistry,
        notifier: Optional[Notifier] = None,
        context: Optional[Mapping[str, Any]] = None,
        on_created: Optional[Callable[[FieldSchema, FormFieldOption], None]] = None,
    ):
        self._executor = executor
        self._store = store
        self._learned = learned
        self._notifier = notifier
        self._context = dict(context or {})
        self._on_created = on_created

        self.state = QuickCreateState.IDLE
        self.field: Optional[FieldSchema] = None
        self.config: Optional[QuickCreateConfig] = None
        self.error_message: Optional[str] = None
        self.created_option: Optional[FormFieldOption] = None
        self.pending: Optional[PendingCreate] = None
        self._submitting = False

        self.values = FormValueStore({NAME_FIELD: "", CODE_FIELD: ""})
        self._derivation = DerivationEngine(self.values, [DerivationMapping(NAME_FIELD, CODE_FIELD)])

    # ------------------------------------------------------------------ state

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    @property
    def is_open(self) -> bool:
        return self.state is QuickCreateState.OPEN

    @property
    def in_flight(self) -> bool:
        return FlagContextManager.is_flag_set(self, ManagerFlag.SUBMITTING)

    @property
    def name(self) -> str:
        return self.values.get(NAME_FIELD) or ""

    @property
    def code(self) -> str:
        return self.values.get(CODE_FIELD) or ""

    def open(self, schema: FieldSchema) -> None:
        """
        Open the sub-form for ``schema``.

        Raises:
            LookupContextError: If the field has no lookup id or no action can be resolved
        """
        if not schema.lookup_id:
            raise LookupContextError(MISSING_LOOKUP_MESSAGE)
        config = ensure_quick_create_action(schema)
        if config is None or not config.action:
            raise LookupContextError(UNAVAILABLE_MESSAGE)

        self._discard_pending()
        self.field = schema
        self.config = config
        self.error_message = None
        self.created_option = None
        self.values = FormValueStore({NAME_FIELD: "", CODE_FIELD: ""})
        self._derivation.dispose()
        self._derivation = DerivationEngine(self.values, [DerivationMapping(NAME_FIELD, CODE_FIELD)])
        self.state = QuickCreateState.OPEN
        logger.info(f"Quick create opened for {schema.name} (lookup {schema.lookup_id})")

    def set_name(self, value: str) -> None:
        self.values.set_value(NAME_FIELD, value, source=ChangeSource.USER)

    def set_code(self, value: str) -> None:
        self._derivation.mark_manually_edited(CODE_FIELD)
        self.values.set_value(CODE_FIELD, value, source=ChangeSource.USER)

    def cancel(self) -> None:
        if self.state is QuickCreateState.OPEN:
            logger.debug(f"Quick create cancelled for {self.field.name}")
        self._discard_pending()
        self.state = QuickCreateState.CANCELLED
        self.error_message = None

    def _discard_pending(self) -> None:
        if self.pending is not None:
            logger.info(f"Discarding in-flight quick create for {self.pending.field.name}")
        self.pending = None
        FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, False)

    def _take_pending(self, payload: Mapping[str, Any]) -> Optional[PendingCreate]:
        """Claim the pending create ``payload`` belongs to; None when it was discarded."""
        pending = self.pending
        if pending is None or pending.payload is not payload:
            logger.debug("Dropping result of a discarded quick create")
            return None
        self.pending = None
        FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, False)
        return pending

    # ------------------------------------------------------------- submission

    def validate(self) -> Optional[str]:
        if not self.name.strip():
            return "Name is required."
        if not self.code.strip():
            return "Code is required."
        if self.field is None or not self.field.lookup_id:
            return MISSING_LOOKUP_MESSAGE
        return None

    def begin_submit(self) -> Optional[Dict[str, str]]:
        """Validate and mark in flight. Returns the action input, or None if rejected."""
        if self.state is not QuickCreateState.OPEN:
            logger.warning("Quick create submit ignored: flow is not open")
            return None
        if self.in_flight:
            logger.debug("Quick create submit ignored: already in flight")
            return None

        error = self.validate()
        if error:
            self.error_message = error
            return None

        self.error_message = None
        payload = {
            "lookupId": self.field.lookup_id,
            "name": self.name.strip(),
            "code": self.code.strip(),
        }
        self.pending = PendingCreate(field=self.field, config=self.config, payload=payload)
        FlagContextManager.set_flag(self, ManagerFlag.SUBMITTING, True)
        return payload

    def execute(self, payload: Dict[str, str]) -> ActionResult:
        """Run the create action. Safe to call off the GUI thread."""
        executor = self._executor or get_action_executor()
        if executor is None:
            raise ActionExecutionError(UNAVAILABLE_MESSAGE)
        pending = self.pending
        config = pending.config if pending is not None and pending.payload is payload else self.config
        if config is None:
            raise ActionExecutionError(UNAVAILABLE_MESSAGE)
        return execute_action(
            executor,
            config.action,
            input=payload,
            context=self._context,
        )

    def complete(self, result: ActionResult, payload: Dict[str, str]) -> Optional[FormFieldOption]:
        """
        Commit a successful create into learned options and the field value.

        Returns None without touching the form when the create was cancelled
        or superseded by a reopen.
        """
        pending = self._take_pending(payload)
        if pending is None:
            return None
        option = extract_created_option(result.data, payload["code"], payload["name"])
        schema = pending.field

        self._learned.learn(schema.name, option, base=schema.options)
        self._store.set_value(schema.name, option.value, source=ChangeSource.PROGRAMMATIC)

        self.created_option = option
        self.state = QuickCreateState.SUCCEEDED
        self.notifier.success(pending.config.success_message or result.message or DEFAULT_SUCCESS_MESSAGE)
        logger.info(f"Quick create for {schema.name} produced {option.value!r}")

        if self._on_created is not None:
            self._on_created(schema, option)
        return option

    def fail(self, error: Exception, payload: Mapping[str, Any]) -> None:
        """Record a failed create; the sub-form stays open for retry."""
        if self._take_pending(payload) is None:
            return
        self.error_message = str(error) or DEFAULT_FAILURE_MESSAGE
        logger.warning(f"Quick create for {self.field.name} failed: {self.error_message}")

    def submit(self) -> Optional[FormFieldOption]:
        """Validate, execute and commit inline. Returns the new option or None."""
        payload = self.begin_submit()
        if payload is None:
            return None
        try:
            result = self.execute(payload)
        except Exception as e:
            logger.exception("Quick create action failed")
            self.fail(e, payload)
            return None
        return self.complete(result, payload)
