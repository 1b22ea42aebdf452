"""
Service layer for metadata forms.

Cross-cutting concerns: user-edit dispatch, flag management, signal
blocking and the REST collaborators.
"""

from .signal_service import SignalService
from .flag_context_manager import FlagContextManager, ManagerFlag
from .field_change_dispatcher import FieldChangeDispatcher, FieldChangeEvent
from .rest_clients import RestActionExecutor, RestHouseholdDirectory

__all__ = [
    "SignalService",
    "FlagContextManager",
    "ManagerFlag",
    "FieldChangeDispatcher",
    "FieldChangeEvent",
    "RestActionExecutor",
    "RestHouseholdDirectory",
]
