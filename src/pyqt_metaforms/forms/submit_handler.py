"""
Submit pipeline for metadata forms.

Turns a value snapshot into an action call and the action's outcome into
notifications, inline errors and an optional redirect. The submit action
descriptor's ``config`` drives it:

    identifierKey / idParam / resourceIdParam / primaryIdentifier
    identifierCandidates / identifierKeys / resultIdentifierKeys
    resultKey / identifierField / resultIdentifier
    createMessage / updateMessage / successMessage / errorMessage
    redirectTemplate / successRedirect / redirectUrl / url

Redirect templates use ``{{ token }}`` placeholders resolved against the
payload, the result data and the route params; a placeholder that resolves
to nothing cancels the redirect.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pyqt_metaforms.exceptions import ActionExecutionError
from pyqt_metaforms.protocols.action_executor import (
    ActionExecutor, ActionResult, execute_action, get_action_executor,
)
from pyqt_metaforms.protocols.notifier import Navigator, Notifier, get_navigator, get_notifier

logger = logging.getLogger(__name__)

MISSING_HANDLER_MESSAGE = "This form is missing a submit handler. Please contact the support team."
DEFAULT_ERROR_MESSAGE = "Saving changes failed. Please try again in a moment."
DEFAULT_UPDATE_MESSAGE = "Changes saved successfully."
DEFAULT_CREATE_MESSAGE = "Form submitted successfully."

_TEMPLATE_TOKEN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


def _optional_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _string_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [item for item in (_optional_string(v) for v in value) if item]
    single = _optional_string(value)
    return [single] if single else []


def _first_present(config: Mapping[str, Any], *keys: str) -> Any:
    """First value that is not None, like a chain of ``??``."""
    for key in keys:
        if config.get(key) is not None:
            return config[key]
    return None


def extract_template_tokens(template: str) -> List[str]:
    """Tokens of a ``{{ token }}`` template; dotted tokens also yield their last segment."""
    tokens: List[str] = []
    for match in _TEMPLATE_TOKEN.finditer(template):
        token = match.group(1).strip()
        if not token:
            continue
        tokens.append(token)
        segments = token.split(".")
        if len(segments) > 1 and segments[-1]:
            tokens.append(segments[-1])
    return tokens


def resolve_path_value(source: Mapping[str, Any], path: str) -> Any:
    current: Any = source
    for segment in (part.strip() for part in path.split(".")):
        if not segment:
            continue
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current


def render_template(template: Optional[str], context: Mapping[str, Any]) -> Optional[str]:
    """Render ``{{ token }}`` placeholders; None if any placeholder is missing or empty."""
    if not template:
        return None
    missing = False

    def substitute(match: "re.Match[str]") -> str:
        nonlocal missing
        value = resolve_path_value(context, match.group(1).strip())
        text = "" if value is None else str(value)
        if not text:
            missing = True
        return text

    rendered = _TEMPLATE_TOKEN.sub(substitute, template)
    return None if missing else rendered


@dataclass
class SubmitSettings:
    identifier_key: Optional[str] = None
    identifier_candidates: List[str] = field(default_factory=list)
    create_message: Optional[str] = None
    update_message: Optional[str] = None
    success_message: Optional[str] = None
    error_message: Optional[str] = None
    redirect_template: Optional[str] = None

    @classmethod
    def from_action(cls, action: Optional[Mapping[str, Any]]) -> "SubmitSettings":
        config = (action or {}).get("config") or {}
        candidates: List[str] = []

        def push(value: Any) -> None:
            text = _optional_string(value)
            if text and text not in candidates:
                candidates.append(text)

        redirect_template = _optional_string(
            _first_present(config, "redirectTemplate", "successRedirect", "redirectUrl", "url")
        )

        push(_first_present(config, "identifierKey", "idParam", "resourceIdParam", "primaryIdentifier"))
        for value in _string_list(
            _first_present(config, "identifierCandidates", "identifierKeys", "resultIdentifierKeys") or []
        ):
            push(value)
        if redirect_template:
            for token in extract_template_tokens(redirect_template):
                push(token)
        push(_first_present(config, "resultKey", "identifierField", "resultIdentifier"))
        for fallback in ("id", "recordId"):
            if fallback not in candidates:
                candidates.append(fallback)

        return cls(
            identifier_key=candidates[0] if candidates else None,
            identifier_candidates=candidates,
            create_message=_optional_string(config.get("createMessage")),
            update_message=_optional_string(config.get("updateMessage")),
            success_message=_optional_string(config.get("successMessage")),
            error_message=_optional_string(config.get("errorMessage")),
            redirect_template=redirect_template,
        )


@dataclass
class SubmitOutcome:
    """What a submit attempt produced, for the controller and widgets."""
    success: bool
    message: Optional[str] = None
    redirect_url: Optional[str] = None
    identifier: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    form_errors: List[str] = field(default_factory=list)
    result: Optional[ActionResult] = None


class FormSubmitHandler:
    """Executes one form's submit action and interprets the outcome."""

    def __init__(
        self,
        action: Optional[Mapping[str, Any]],
        executor: Optional[ActionExecutor] = None,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
        mode: Optional[str] = None,
        context_params: Optional[Mapping[str, Any]] = None,
        role: Optional[str] = None,
    ):
        self.action = dict(action) if action else None
        self._executor = executor
        self._notifier = notifier
        self._navigator = navigator
        self.mode = mode
        self.context_params = dict(context_params or {})
        self.role = role
        self.settings = SubmitSettings.from_action(self.action)

    @property
    def executor(self) -> Optional[ActionExecutor]:
        return self._executor or get_action_executor()

    @property
    def notifier(self) -> Notifier:
        return self._notifier or get_notifier()

    @property
    def navigator(self) -> Optional[Navigator]:
        return self._navigator or get_navigator()

    # ------------------------------------------------------------ building

    def has_handler(self) -> bool:
        if not self.action:
            return False
        if _optional_string(self.action.get("kind")):
            return True
        config = self.action.get("config")
        return isinstance(config, Mapping) and bool(_optional_string(config.get("handler")))

    def resolve_success_message(self) -> str:
        s = self.settings
        if self.mode == "edit":
            return s.update_message or s.success_message or DEFAULT_UPDATE_MESSAGE
        if self.mode == "create":
            return s.create_message or s.success_message or DEFAULT_CREATE_MESSAGE
        return s.success_message or s.update_message or s.create_message or DEFAULT_UPDATE_MESSAGE

    def resolve_identifier(self, source: Mapping[str, Any]) -> Optional[str]:
        for candidate in self.settings.identifier_candidates:
            value = source.get(candidate)
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                first = next((item for item in value if _optional_string(item)), None)
                if first is not None:
                    return first
                continue
            if _optional_string(value):
                return value
        return None

    def build_payload(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"mode": self.mode, "values": dict(values)}
        if self.settings.identifier_key:
            payload[self.settings.identifier_key] = self.resolve_identifier(self.context_params)
        return payload

    def build_context(self) -> Dict[str, Any]:
        return {"params": self.context_params, "role": self.role}

    # ------------------------------------------------------------ executing

    def execute(self, payload: Mapping[str, Any]) -> ActionResult:
        """Run the submit action. Safe to call off the GUI thread."""
        return execute_action(self.executor, self.action, input=dict(payload), context=self.build_context())

    def submit(self, values: Mapping[str, Any]) -> SubmitOutcome:
        """Build, execute and interpret inline."""
        if not self.has_handler() or self.executor is None:
            return self.handle_missing_handler()
        payload = self.build_payload(values)
        try:
            result = self.execute(payload)
        except Exception as e:
            return self.handle_failure(e)
        return self.handle_success(result, payload)

    def handle_missing_handler(self) -> SubmitOutcome:
        logger.error("Submit attempted on a form without a submit handler")
        self.notifier.error(MISSING_HANDLER_MESSAGE)
        return SubmitOutcome(success=False, message=MISSING_HANDLER_MESSAGE)

    # ---------------------------------------------------------- interpreting

    def build_template_context(
        self,
        payload: Mapping[str, Any],
        result_data: Optional[Mapping[str, Any]],
        identifier: Optional[str],
    ) -> Dict[str, Any]:
        context: Dict[str, Any] = {**payload, "data": dict(result_data or {}), "params": self.context_params}
        if result_data:
            context.update(result_data)
        if identifier:
            if context.get("id") is None:
                context["id"] = identifier
            if context.get("identifier") is None:
                context["identifier"] = identifier
        return context

    def handle_success(self, result: ActionResult, payload: Mapping[str, Any]) -> SubmitOutcome:
        result_data = result.data if isinstance(result.data, Mapping) else None
        identifier = (
            self.resolve_identifier({**self.context_params, **(result_data or {})})
            or self.resolve_identifier(self.context_params)
        )

        message = result.message or self.resolve_success_message()
        if message:
            self.notifier.success(message)

        redirect_url = result.redirect_url or render_template(
            self.settings.redirect_template,
            self.build_template_context(payload, result_data, identifier),
        )
        if redirect_url and self.navigator is not None:
            self.navigator.push(redirect_url)

        logger.info(f"Form submitted (mode={self.mode}, identifier={identifier})")
        return SubmitOutcome(
            success=True,
            message=message,
            redirect_url=redirect_url,
            identifier=identifier,
            result=result,
        )

    def handle_failure(self, error: Exception) -> SubmitOutcome:
        logger.error(f"Failed to submit form: {error}")
        result = error.result if isinstance(error, ActionExecutionError) else None

        if result is not None:
            bag = result.errors
            field_errors = {
                name: " ".join(messages)
                for name, messages in (bag.field_errors.items() if bag else ())
                if messages
            }
            raw_form_errors = (bag.form_errors if bag and bag.form_errors else
                               [result.message] if result.message else [])
            form_errors = [m for m in raw_form_errors if m and m.strip()]
            if field_errors or form_errors:
                return SubmitOutcome(
                    success=False,
                    message=result.message,
                    field_errors=field_errors,
                    form_errors=form_errors,
                    result=result,
                )

        message = str(error) or self.settings.error_message or DEFAULT_ERROR_MESSAGE
        return SubmitOutcome(success=False, message=message, form_errors=[message], result=result)
