"""Editable household picker bound to a HouseholdReconciler."""

import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from PyQt6.QtWidgets import QComboBox, QWidget

from pyqt_metaforms.core.background_task import BackgroundTaskManager
from pyqt_metaforms.forms.household import HouseholdReconciler
from pyqt_metaforms.protocols.form_config import get_form_config
from pyqt_metaforms.protocols.widget_adapters import PyQtWidgetMeta
from pyqt_metaforms.protocols.widget_protocols import (
    ChangeSignalEmitter, PlaceholderCapable, ValueGettable, ValueSettable,
)
from pyqt_metaforms.services.signal_service import SignalService

logger = logging.getLogger(__name__)


class HouseholdSelector(QComboBox, ValueGettable, ValueSettable, PlaceholderCapable,
                        ChangeSignalEmitter, metaclass=PyQtWidgetMeta):
    """
    Household name control.

    Picking an entry selects that household through the reconciler. Typing
    is a user edit of ``householdName``, which demotes any selection to free
    text. The value is the displayed household name.
    """

    _widget_id = "household_selector"

    def __init__(
        self,
        reconciler: HouseholdReconciler,
        parent: Optional[QWidget] = None,
        task_manager: Optional[BackgroundTaskManager] = None,
    ):
        super().__init__(parent)
        self.reconciler = reconciler
        self._task_manager = task_manager or BackgroundTaskManager(
            inline=not get_form_config().run_actions_in_background
        )
        self.setEditable(True)
        self.setInsertPolicy(QComboBox.InsertPolicy.NoInsert)
        self.activated.connect(self._on_activated)
        self.refresh_options()

    # ------------------------------------------------------------ adapter ABCs

    def get_value(self) -> Any:
        return self.currentText()

    def set_value(self, value: Any) -> None:
        self.setEditText("" if value is None else str(value))

    def set_placeholder(self, text: str) -> None:
        self.lineEdit().setPlaceholderText(text)

    def connect_change_signal(self, callback: Callable[[Any], None]) -> None:
        # textEdited fires for typing only, not for picks or setEditText()
        self.lineEdit().textEdited.connect(lambda text: callback(text))

    # ---------------------------------------------------------------- options

    def refresh_options(self) -> None:
        """Rebuild the entries from the reconciler, keeping the typed text."""
        text = self.currentText()
        with SignalService.block_signals(self):
            self.clear()
            for option in self.reconciler.options:
                self.addItem(option.name, option.key)
            self.setCurrentIndex(-1)
            self.setEditText(text)

    def _on_activated(self, index: int) -> None:
        key = self.itemData(index) if index >= 0 else None
        if key is None:
            return
        self.reconciler.select_by_key(key)

    def clear_selection(self) -> None:
        self.reconciler.clear_selection()

    # -------------------------------------------------------------- directory

    @property
    def is_loading(self) -> bool:
        return self.reconciler.is_loading

    def load_directory(self) -> bool:
        """Fetch the household directory on the task manager. Returns False if not started."""
        directory = self.reconciler.resolve_directory()
        if directory is None:
            logger.debug("No household directory registered; manual entry only")
            return False
        if self._task_manager.in_flight:
            return False

        request_key = self.reconciler.begin_directory_fetch()
        return self._task_manager.run(
            target=directory.fetch_households,
            on_success=lambda rows: self._on_rows(request_key, rows),
            on_error=lambda error: self._on_failure(request_key, error),
        )

    def _on_rows(self, request_key: int, rows: Iterable[Mapping[str, Any]]) -> None:
        if self.reconciler.apply_directory_rows(request_key, rows):
            self.refresh_options()

    def _on_failure(self, request_key: int, error: Exception) -> None:
        self.reconciler.apply_directory_failure(request_key, error)

    def cleanup(self) -> None:
        self._task_manager.cleanup()
