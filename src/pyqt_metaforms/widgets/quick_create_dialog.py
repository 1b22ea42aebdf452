"""Dialog rendering an open QuickCreateFlow."""

import logging
from typing import Any, Dict, Optional

from PyQt6.QtWidgets import (
    QDialog, QDialogButtonBox, QFormLayout, QLabel, QPushButton, QVBoxLayout, QWidget,
)

from pyqt_metaforms.core.background_task import BackgroundTaskManager
from pyqt_metaforms.core.value_store import ChangeSource, ValueChange
from pyqt_metaforms.forms.layout_constants import COMPACT_LAYOUT, FormLayoutConfig
from pyqt_metaforms.forms.quick_create import CODE_FIELD, QuickCreateFlow
from pyqt_metaforms.protocols.action_executor import ActionResult
from pyqt_metaforms.protocols.form_config import get_form_config
from pyqt_metaforms.protocols.widget_adapters import LineEditAdapter
from pyqt_metaforms.services.signal_service import SignalService
from pyqt_metaforms.widgets.field_widgets import ERROR_STYLE

logger = logging.getLogger(__name__)


class QuickCreateDialog(QDialog):
    """
    Name/code sub-form for creating a lookup option.

    The flow must already be open. The code field mirrors the flow's
    derived value until the user types into it.
    """

    def __init__(
        self,
        flow: QuickCreateFlow,
        parent: Optional[QWidget] = None,
        task_manager: Optional[BackgroundTaskManager] = None,
        layout_config: FormLayoutConfig = COMPACT_LAYOUT,
    ):
        super().__init__(parent)
        if not flow.is_open:
            raise ValueError("QuickCreateDialog requires an open QuickCreateFlow")
        self.flow = flow
        self._task_manager = task_manager or BackgroundTaskManager(
            inline=not get_form_config().run_actions_in_background
        )
        config = flow.config

        self.setWindowTitle(config.label or f"Add {flow.field.display_label}")
        self.setModal(True)

        layout = QVBoxLayout(self)
        layout.setSpacing(layout_config.main_layout_spacing)
        layout.setContentsMargins(*layout_config.main_layout_margins)

        if config.description:
            description = QLabel(config.description)
            description.setWordWrap(True)
            layout.addWidget(description)

        form = QFormLayout()
        self.name_edit = LineEditAdapter(self)
        self.name_edit.set_placeholder("Name")
        self.code_edit = LineEditAdapter(self)
        self.code_edit.set_placeholder("Generated from the name")
        form.addRow("Name", self.name_edit)
        form.addRow("Code", self.code_edit)
        layout.addLayout(form)

        self.error_label = QLabel()
        self.error_label.setWordWrap(True)
        self.error_label.setStyleSheet(ERROR_STYLE)
        self.error_label.setVisible(False)
        layout.addWidget(self.error_label)

        buttons = QDialogButtonBox()
        self.submit_button = QPushButton(config.submit_label or "Create")
        self.submit_button.setDefault(True)
        buttons.addButton(self.submit_button, QDialogButtonBox.ButtonRole.AcceptRole)
        self.cancel_button = buttons.addButton(QDialogButtonBox.StandardButton.Cancel)
        layout.addWidget(buttons)

        self.name_edit.connect_change_signal(flow.set_name)
        self.code_edit.connect_change_signal(flow.set_code)
        self._unsubscribe_code = flow.values.subscribe(CODE_FIELD, self._mirror_code)
        self.submit_button.clicked.connect(self.submit)
        self.cancel_button.clicked.connect(self.reject)

    def _mirror_code(self, change: ValueChange) -> None:
        if change.source is ChangeSource.USER:
            return
        SignalService.update_widget_value(self.code_edit, change.value)

    def _show_error(self, message: Optional[str]) -> None:
        self.error_label.setText(message or "")
        self.error_label.setVisible(bool(message))

    def submit(self) -> None:
        payload = self.flow.begin_submit()
        if payload is None:
            self._show_error(self.flow.error_message)
            return
        self._show_error(None)
        self._task_manager.run(
            target=self.flow.execute,
            args=(payload,),
            on_success=lambda result: self._on_success(result, payload),
            on_error=lambda error: self._on_error(error, payload),
            button=self.submit_button,
            button_loading_text="Saving...",
        )

    def _on_success(self, result: ActionResult, payload: Dict[str, Any]) -> None:
        if self.flow.complete(result, payload) is None:
            return
        self._close_flow()
        self.accept()

    def _on_error(self, error: Exception, payload: Dict[str, Any]) -> None:
        self.flow.fail(error, payload)
        self._show_error(self.flow.error_message)

    def _close_flow(self) -> None:
        self._task_manager.cleanup()
        self._unsubscribe_code()

    def reject(self) -> None:
        if self.flow.is_open:
            self.flow.cancel()
        self._close_flow()
        super().reject()
