"""
Collaborator protocols, provider registries and widget contracts.

Applications register their action executor, household directory, notifier
and navigator here; forms look them up when none is passed explicitly.
"""

from .widget_protocols import (
    ValueGettable,
    ValueSettable,
    PlaceholderCapable,
    OptionSelectable,
    ChangeSignalEmitter,
)
from .form_config import MetaFormConfig, set_form_config, get_form_config
from .action_executor import (
    ActionErrorBag,
    ActionResult,
    ActionExecutor,
    execute_action,
    register_action_executor,
    get_action_executor,
)
from .directory import HouseholdDirectory, register_household_directory, get_household_directory
from .notifier import (
    Notifier,
    Navigator,
    LoggingNotifier,
    register_notifier,
    get_notifier,
    register_navigator,
    get_navigator,
)

__all__ = [
    "ValueGettable",
    "ValueSettable",
    "PlaceholderCapable",
    "OptionSelectable",
    "ChangeSignalEmitter",
    "MetaFormConfig",
    "set_form_config",
    "get_form_config",
    "ActionErrorBag",
    "ActionResult",
    "ActionExecutor",
    "execute_action",
    "register_action_executor",
    "get_action_executor",
    "HouseholdDirectory",
    "register_household_directory",
    "get_household_directory",
    "Notifier",
    "Navigator",
    "LoggingNotifier",
    "register_notifier",
    "get_notifier",
    "register_navigator",
    "get_navigator",
]
