"""
Unified Field Change Dispatcher.

Every direct user edit of a rendered control goes through one dispatcher, so
the manual-edit lock, user-action hooks and the store write always happen in
the same order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pyqt_metaforms.core.value_store import ChangeSource
from pyqt_metaforms.services.flag_context_manager import FlagContextManager, ManagerFlag

if TYPE_CHECKING:
    from pyqt_metaforms.forms.form_controller import FormController

logger = logging.getLogger(__name__)

# Debug flag for verbose dispatcher logging
DEBUG_DISPATCHER = False


@dataclass(frozen=True)
class FieldChangeEvent:
    """Immutable event representing a user edit of one control."""
    field_name: str                          # Field whose control was edited
    value: Any                               # New value read from the control
    source_controller: 'FormController'      # Form that owns the control


class FieldChangeDispatcher:
    """Singleton dispatcher for all user edits. Stateless."""

    _instance = None

    @classmethod
    def instance(cls) -> 'FieldChangeDispatcher':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def dispatch(self, event: FieldChangeEvent) -> None:
        """Handle a user edit event."""
        controller = event.source_controller
        name = event.field_name

        if DEBUG_DISPATCHER:
            logger.info(f"DISPATCH: {name} = {repr(event.value)[:50]}")

        # Reentrancy guard: a hook writing back into a control must not re-dispatch
        if FlagContextManager.is_flag_set(controller, ManagerFlag.DISPATCHING):
            if DEBUG_DISPATCHER:
                logger.warning(f"DISPATCH BLOCKED: {name} (already dispatching)")
            return

        if FlagContextManager.is_flag_set(controller, ManagerFlag.IN_RESET):
            if DEBUG_DISPATCHER:
                logger.warning(f"DISPATCH BLOCKED: {name} (reset in progress)")
            return

        with FlagContextManager.dispatch_context(controller):
            # 1. Lock derived fields the moment the user types into them
            if controller.derivation.is_derived_target(name):
                controller.derivation.mark_manually_edited(name)
                if DEBUG_DISPATCHER:
                    logger.info(f"  locked derived field {name}")

            # 2. Discrete user actions tied to this control (household demotion)
            for hook in list(controller.user_edit_hooks.get(name, ())):
                hook(event.value)

            # 3. Commit; reactors run synchronously inside set_value
            controller.store.set_value(name, event.value, source=ChangeSource.USER)

            # 4. A corrected field no longer shows its previous error
            controller.clear_field_error(name)

        logger.debug(f"Dispatched user edit {name}")
