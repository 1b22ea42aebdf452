"""
Boolean guard flags on FormController and QuickCreateFlow.

Scoped guards (reset, dispatch) are set with a context manager so they are
restored even when a listener raises:

    with FlagContextManager.reset_context(controller):
        controller.store.reset()

The submit guard spans a background call, so it is set on submit start and
cleared by whichever of the success or failure paths runs:

    FlagContextManager.set_flag(controller, ManagerFlag.SUBMITTING, True)
"""

from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Set
import logging

logger = logging.getLogger(__name__)


class ManagerFlag(Enum):
    """Every guard flag an owner must initialize to False in ``__init__``."""
    IN_RESET = '_in_reset'          # Store reset in progress; user dispatch is ignored
    DISPATCHING = '_dispatching'    # A user edit is being dispatched (reentrancy guard)
    SUBMITTING = '_submitting'      # A submit is in flight; duplicates are rejected


class FlagContextManager:
    """Validated get/set/scope helpers for ManagerFlag attributes."""

    VALID_FLAGS: Set[str] = {flag.value for flag in ManagerFlag}

    @staticmethod
    def _validate(names) -> None:
        invalid = set(names) - FlagContextManager.VALID_FLAGS
        if invalid:
            raise ValueError(
                f"Invalid flags: {invalid}. "
                f"Valid flags: {FlagContextManager.VALID_FLAGS}. "
                f"Add new flags to ManagerFlag enum."
            )

    @staticmethod
    @contextmanager
    def manage_flags(obj: Any, **flags: bool):
        """
        Set flags for the duration of the block, then restore the previous values.

        Raises:
            ValueError: If any flag name is not a ManagerFlag value
            AttributeError: If the owner never initialized the flag
        """
        FlagContextManager._validate(flags)
        saved: Dict[str, bool] = {name: getattr(obj, name) for name in flags}
        for name, value in flags.items():
            setattr(obj, name, value)
        try:
            yield
        finally:
            for name, value in saved.items():
                setattr(obj, name, value)

    @staticmethod
    @contextmanager
    def reset_context(obj: Any):
        with FlagContextManager.manage_flags(obj, **{ManagerFlag.IN_RESET.value: True}):
            yield

    @staticmethod
    @contextmanager
    def dispatch_context(obj: Any):
        with FlagContextManager.manage_flags(obj, **{ManagerFlag.DISPATCHING.value: True}):
            yield

    @staticmethod
    def set_flag(obj: Any, flag: ManagerFlag, value: bool) -> None:
        """Set a flag outside a scoped block (submit start and finish)."""
        getattr(obj, flag.value)
        setattr(obj, flag.value, value)
        logger.debug(f"{type(obj).__name__}.{flag.value} = {value}")

    @staticmethod
    def is_flag_set(obj: Any, flag: ManagerFlag) -> bool:
        return getattr(obj, flag.value)

    @staticmethod
    def get_flag_state(obj: Any) -> Dict[str, bool]:
        """Current value of every flag the object carries (for logging)."""
        return {
            flag.value: getattr(obj, flag.value)
            for flag in ManagerFlag
            if hasattr(obj, flag.value)
        }
