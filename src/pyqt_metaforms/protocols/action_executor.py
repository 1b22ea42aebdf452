"""Action executor protocol for running metadata actions.

Allows applications to provide their own backend transport without
pyqt-metaforms depending on a specific action service. Action descriptors
are opaque mappings passed through untouched.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from pyqt_metaforms.exceptions import ActionExecutionError


@dataclass
class ActionErrorBag:
    """Structured validation errors returned by a failed action."""
    field_errors: Dict[str, List[str]] = field(default_factory=dict)
    form_errors: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> Optional["ActionErrorBag"]:
        if not isinstance(payload, Mapping):
            return None
        field_errors: Dict[str, List[str]] = {}
        for name, messages in (payload.get("fieldErrors") or {}).items():
            if isinstance(messages, str):
                messages = [messages]
            field_errors[name] = [str(m) for m in messages or []]
        form_errors = [str(m) for m in payload.get("formErrors") or []]
        return cls(field_errors=field_errors, form_errors=form_errors)


@dataclass
class ActionResult:
    """Outcome of one action execution.

    Attributes:
        success: False when the backend reported an application failure
        data: Result payload (empty dict when the backend returned none)
        message: Optional human-readable message
        redirect_url: Optional URL to navigate to after success
        errors: Optional structured error bag
    """
    success: bool = True
    data: Any = None
    message: Optional[str] = None
    redirect_url: Optional[str] = None
    errors: Optional[ActionErrorBag] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ActionResult":
        """Build from a camelCase JSON response body."""
        message = payload.get("message") or payload.get("error")
        return cls(
            success=bool(payload.get("success", True)),
            data=payload.get("data"),
            message=message if isinstance(message, str) else None,
            redirect_url=payload.get("redirectUrl"),
            errors=ActionErrorBag.from_payload(payload.get("errors")),
        )


class ActionExecutor(Protocol):
    """Protocol for services that execute metadata action descriptors.

    Implementations either return an ActionResult (possibly with
    ``success=False``) or raise ActionExecutionError.

    Example:
        from pyqt_metaforms.protocols import register_action_executor
        from pyqt_metaforms.services.rest_clients import RestActionExecutor

        register_action_executor(RestActionExecutor())
    """

    def execute(
        self,
        action: Mapping[str, Any],
        input: Any = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> ActionResult:
        """Execute an action descriptor.

        Args:
            action: Opaque action descriptor
            input: Action input payload
            context: Execution context (route params, role)

        Returns:
            ActionResult describing the outcome
        """
        ...


def execute_action(
    executor: ActionExecutor,
    action: Mapping[str, Any],
    input: Any = None,
    context: Optional[Mapping[str, Any]] = None,
) -> ActionResult:
    """Execute and treat ``success=False`` the same as a raised failure.

    Raises:
        ActionExecutionError: When the executor raises or reports failure
    """
    result = executor.execute(action, input=input, context=context or {})
    if not result.success:
        raise ActionExecutionError(result.message or "The action could not be completed.", result=result)
    return result


# Global executor instance (set by application)
_action_executor: Optional[ActionExecutor] = None


def register_action_executor(executor: ActionExecutor) -> None:
    """Register an action executor implementation.

    Args:
        executor: Object implementing ActionExecutor
    """
    global _action_executor
    _action_executor = executor


def get_action_executor() -> Optional[ActionExecutor]:
    """Get the registered action executor.

    Returns:
        Registered executor or None if not registered
    """
    return _action_executor
