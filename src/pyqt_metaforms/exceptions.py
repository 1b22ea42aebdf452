"""Exception hierarchy for metadata form handling."""

from typing import Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from pyqt_metaforms.protocols.action_executor import ActionResult


class MetaFormError(Exception):
    """Base class for every error raised by pyqt-metaforms."""


class SchemaError(MetaFormError):
    """Raised when field metadata cannot describe a valid form."""


class FormValidationError(MetaFormError):
    """Raised when required fields are missing at submit time."""

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        names = ", ".join(sorted(self.field_errors))
        super().__init__(f"Form has missing required fields: {names}")


class LookupContextError(MetaFormError):
    """Raised when a lookup operation has no resolvable lookup context."""


class ActionExecutionError(MetaFormError):
    """Raised when the action collaborator fails or reports failure.

    ``result`` carries the collaborator's structured response when one was
    received, so field and form error bags can still be applied.
    """

    def __init__(self, message: str, result: Optional["ActionResult"] = None):
        super().__init__(message)
        self.result = result


class DirectoryFetchError(MetaFormError):
    """Raised when a directory read endpoint cannot be used."""
