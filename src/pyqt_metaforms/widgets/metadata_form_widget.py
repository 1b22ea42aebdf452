"""
PyQt6 rendering of a FormController.

The widget never owns form state. It renders rows from the layout grouper,
forwards user edits to ``FormController.handle_user_edit`` and mirrors every
non-user store write back into the controls with signals blocked.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtGui import QCloseEvent
from PyQt6.QtWidgets import (
    QGridLayout, QHBoxLayout, QLabel, QPushButton, QTabBar, QVBoxLayout, QWidget,
)

from pyqt_metaforms.core.background_task import BackgroundTaskManager
from pyqt_metaforms.core.value_store import ChangeSource, ValueChange
from pyqt_metaforms.forms.field_schema import FieldSchema
from pyqt_metaforms.forms.form_controller import FormController
from pyqt_metaforms.forms.household import HOUSEHOLD_NAME_FIELD
from pyqt_metaforms.forms.layout import ROW_CAPACITY, build_field_row_helper_map, column_units
from pyqt_metaforms.forms.layout_constants import FormLayoutConfig, get_layout
from pyqt_metaforms.protocols.action_executor import ActionResult
from pyqt_metaforms.protocols.form_config import get_form_config
from pyqt_metaforms.protocols.widget_protocols import OptionSelectable, PlaceholderCapable
from pyqt_metaforms.services.signal_service import SignalService
from pyqt_metaforms.widgets.field_widgets import ERROR_STYLE, FieldEditor, FieldWidgetFactory
from pyqt_metaforms.widgets.household_selector import HouseholdSelector
from pyqt_metaforms.widgets.quick_create_dialog import QuickCreateDialog

logger = logging.getLogger(__name__)

FORM_ERROR_TITLE = "We couldn't save your changes"


class MetadataFormWidget(QWidget):
    """
    Interactive form for one FormController.

    Signals:
        submitted: Emitted with the SubmitOutcome of every executed submit
    """

    submitted = pyqtSignal(object)

    def __init__(
        self,
        controller: FormController,
        parent: Optional[QWidget] = None,
        layout_config: Optional[FormLayoutConfig] = None,
        task_manager: Optional[BackgroundTaskManager] = None,
        submit_label: str = "Save",
        load_directory: bool = True,
    ):
        super().__init__(parent)
        config = get_form_config()
        self.controller = controller
        self.layout_config = layout_config or get_layout(config.layout_preset)
        self._task_manager = task_manager or BackgroundTaskManager(inline=not config.run_actions_in_background)
        self._factory = FieldWidgetFactory()
        self.editors: Dict[str, FieldEditor] = {}
        self.household_selector: Optional[HouseholdSelector] = None
        self.quick_create_dialog: Optional[QuickCreateDialog] = None
        self.tab_bar: Optional[QTabBar] = None

        main_layout = QVBoxLayout(self)
        main_layout.setSpacing(self.layout_config.main_layout_spacing)
        main_layout.setContentsMargins(*self.layout_config.main_layout_margins)

        self.form_error_label = QLabel()
        self.form_error_label.setWordWrap(True)
        self.form_error_label.setStyleSheet(ERROR_STYLE)
        self.form_error_label.setVisible(False)
        main_layout.addWidget(self.form_error_label)

        if controller.tabs:
            self.tab_bar = self._build_tab_bar(controller.tabs)
            main_layout.addWidget(self.tab_bar)

        self.grid = QGridLayout()
        self.grid.setHorizontalSpacing(self.layout_config.grid_horizontal_spacing)
        self.grid.setVerticalSpacing(self.layout_config.grid_vertical_spacing)
        main_layout.addLayout(self.grid)
        self._build_fields()

        button_row = QHBoxLayout()
        button_row.addStretch()
        self.reset_button = QPushButton("Reset")
        self.reset_button.clicked.connect(self.reset)
        self.submit_button = QPushButton(submit_label)
        self.submit_button.setDefault(True)
        self.submit_button.clicked.connect(self.submit)
        button_row.addWidget(self.reset_button)
        button_row.addWidget(self.submit_button)
        main_layout.addLayout(button_row)
        main_layout.addStretch()

        self._unsubscribers: List[Callable[[], None]] = [
            controller.store.subscribe_all(self._on_store_change),
            controller.subscribe_errors(self._refresh_errors),
            controller.subscribe_fields(self._refresh_options),
        ]
        controller.visibility.set_callback(self._on_visibility_changed)
        for name in controller.visibility.hidden_fields():
            if name in self.editors:
                self.editors[name].setVisible(False)

        if self.household_selector is not None and load_directory:
            self.household_selector.load_directory()

    # ---------------------------------------------------------------- building

    def _build_tab_bar(self, tabs: List[Mapping[str, Any]]) -> QTabBar:
        tab_bar = QTabBar(self)
        for tab in tabs:
            tab_bar.addTab(str(tab.get("label") or tab.get("id")))
        ids = [tab.get("id") for tab in tabs]
        if self.controller.current_tab in ids:
            tab_bar.setCurrentIndex(ids.index(self.controller.current_tab))
        tab_bar.currentChanged.connect(lambda index: self.controller.set_current_tab(ids[index]))
        return tab_bar

    def _build_fields(self) -> None:
        rows = self.controller.layout_rows()
        helper_map = build_field_row_helper_map(rows)

        for row_index, row in enumerate(rows):
            column = 0
            for schema in row:
                control = self._create_control(schema)
                editor = FieldEditor(
                    schema,
                    control,
                    layout_config=self.layout_config,
                    reserve_helper_space=helper_map.get(schema.name, False),
                    parent=self,
                )
                span = min(column_units(schema), ROW_CAPACITY)
                self.grid.addWidget(editor, row_index, column, 1, span)
                column += span

                SignalService.update_widget_value(control, self.controller.get_value(schema.name))
                control.connect_change_signal(
                    lambda value, name=schema.name: self.controller.handle_user_edit(name, value)
                )
                editor.quick_create_requested.connect(self.open_quick_create)
                self.editors[schema.name] = editor

        logger.debug(f"Rendered {len(self.editors)} field(s) in {len(rows)} row(s)")

    def _create_control(self, schema: FieldSchema) -> QWidget:
        household = self.controller.household
        if household is not None and schema.name == HOUSEHOLD_NAME_FIELD:
            selector = HouseholdSelector(household, parent=self)
            selector.setObjectName(schema.name)
            if schema.placeholder and isinstance(selector, PlaceholderCapable):
                selector.set_placeholder(schema.placeholder)
            self.household_selector = selector
            return selector
        return self._factory.create(schema, self)

    # --------------------------------------------------------------- mirroring

    def _on_store_change(self, change: ValueChange) -> None:
        # The control already shows what the user typed
        if change.source is ChangeSource.USER:
            return
        editor = self.editors.get(change.field_name)
        if editor is None:
            return
        SignalService.update_widget_value(editor.control, change.value)

    def _on_visibility_changed(self, name: str, visible: bool) -> None:
        editor = self.editors.get(name)
        if editor is not None:
            editor.setVisible(visible)

    def _refresh_errors(self) -> None:
        for name, editor in self.editors.items():
            editor.set_error(self.controller.field_errors.get(name))

        form_errors = self.controller.form_errors
        if form_errors:
            lines = "\n".join(f"- {message}" for message in form_errors)
            self.form_error_label.setText(f"{FORM_ERROR_TITLE}\n{lines}")
        self.form_error_label.setVisible(bool(form_errors))

    def _refresh_options(self) -> None:
        for name, editor in self.editors.items():
            if not isinstance(editor.control, OptionSelectable):
                continue
            schema = self.controller.get_field(name)
            SignalService.update_widget_options(editor.control, schema.options, self.controller.get_value(name))

    # ----------------------------------------------------------------- actions

    def open_quick_create(self, name: str) -> Optional[QuickCreateDialog]:
        """Open the quick-create dialog for a select field (non-blocking)."""
        if not self.controller.open_quick_create(name):
            return None
        dialog = QuickCreateDialog(self.controller.quick_create, parent=self, layout_config=self.layout_config)
        self.quick_create_dialog = dialog
        dialog.open()
        return dialog

    def submit(self) -> bool:
        """Validate and run the submit action. Returns False if the submit did not start."""
        payload = self.controller.prepare_submit()
        if payload is None:
            return False
        return self._task_manager.run(
            target=self.controller.execute_submit,
            args=(payload,),
            on_success=lambda result: self._on_submit_result(result, payload),
            on_error=self._on_submit_error,
            button=self.submit_button,
            button_loading_text="Saving...",
        )

    def _on_submit_result(self, result: ActionResult, payload: Dict[str, Any]) -> None:
        outcome = self.controller.finish_submit(result, payload)
        self.submitted.emit(outcome)

    def _on_submit_error(self, error: Exception) -> None:
        outcome = self.controller.fail_submit(error)
        self.submitted.emit(outcome)

    def reset(self) -> None:
        self.controller.reset()

    def closeEvent(self, event: QCloseEvent):
        self._task_manager.cleanup()
        self.controller.abandon_submit()
        if self.household_selector is not None:
            self.household_selector.cleanup()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.controller.visibility.set_callback(None)
        super().closeEvent(event)
