"""
Collaborator calls (submit, quick-create, household directory) off the GUI thread.

A form control has at most one call in flight: BackgroundTaskManager
rejects a second run until the first one reports back, which is what keeps
a double-clicked Save from submitting twice. With ``inline=True`` the same
callbacks run synchronously, which tests and headless callers use.
"""

from typing import Callable, Any, Optional, Tuple
from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot
from PyQt6.QtWidgets import QPushButton
import logging

logger = logging.getLogger(__name__)

CLEANUP_WAIT_MS = 200     # Wait time during widget close cleanup


class BackgroundTask(QThread):
    """
    One collaborator call on a worker thread.

    Emits exactly one of ``result_ready`` or ``error_occurred`` unless
    cancelled first; a cancelled task's outcome is dropped.
    """

    result_ready = pyqtSignal(object)
    error_occurred = pyqtSignal(Exception)

    def __init__(
        self,
        target: Callable[..., Any],
        args: Tuple = (),
        kwargs: dict = None,
        parent=None
    ):
        super().__init__(parent)
        self._call = (target, args, kwargs or {})
        self.cancelled = False

    def run(self):
        target, args, kwargs = self._call
        try:
            outcome = target(*args, **kwargs)
        except Exception as e:
            if self.cancelled:
                logger.debug(f"Dropped failure of cancelled task: {e}")
            else:
                self.error_occurred.emit(e)
            return
        if not self.cancelled:
            self.result_ready.emit(outcome)

    def cancel(self):
        self.cancelled = True


class _CallbackRelay(QObject):
    """Lives on the GUI thread so task signals are delivered there (queued)."""

    def __init__(self, on_success: Callable[[Any], None], on_error: Callable[[Exception], None]):
        super().__init__()
        self._on_success = on_success
        self._on_error = on_error

    @pyqtSlot(object)
    def deliver_result(self, result):
        self._on_success(result)

    @pyqtSlot(Exception)
    def deliver_error(self, error):
        self._on_error(error)


class BackgroundTaskManager:
    """
    Manages the single in-flight operation of one control.

    Handles:
    - Rejecting a second run while one is in flight (duplicate submission)
    - Button state management (disable during operation, auto-restore)
    - Cleanup on widget close
    - Inline execution when ``inline=True`` (no thread, same callbacks)

    Usage in widget:
        self._task_manager = BackgroundTaskManager()

        def submit(self):
            self._task_manager.run(
                target=self.controller.execute_submit,
                args=(payload,),
                button=self.submit_button,
                button_loading_text="Saving...",
                on_success=self._on_submit_result,
                on_error=self._on_submit_error,
            )

        def closeEvent(self, event):
            self._task_manager.cleanup()
            super().closeEvent(event)
    """

    def __init__(self, inline: bool = False):
        self.inline = inline
        self._current_task: Optional[BackgroundTask] = None
        self._relay: Optional[_CallbackRelay] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def run(
        self,
        target: Callable[..., Any],
        args: Tuple = (),
        kwargs: dict = None,
        on_success: Callable[[Any], None] = None,
        on_error: Callable[[Exception], None] = None,
        button: QPushButton = None,
        button_loading_text: str = None,
    ) -> bool:
        """
        Run ``target`` unless an operation is already in flight.

        Returns:
            True if started, False if rejected as a duplicate
        """
        if self._in_flight:
            logger.debug("Background run rejected: operation already in flight")
            return False
        self._in_flight = True

        # Restore the button on success and on error
        original_button_text = None
        if button:
            original_button_text = button.text()
            button.setEnabled(False)
            button.setText(button_loading_text or f"{original_button_text}...")

        def restore_button():
            if button:
                button.setEnabled(True)
                button.setText(original_button_text)

        def wrapped_success(result):
            self._in_flight = False
            restore_button()
            if on_success:
                on_success(result)

        def wrapped_error(error):
            self._in_flight = False
            restore_button()
            if on_error:
                on_error(error)

        if self.inline:
            try:
                result = target(*args, **(kwargs or {}))
            except Exception as e:
                wrapped_error(e)
            else:
                wrapped_success(result)
            return True

        relay = _CallbackRelay(wrapped_success, wrapped_error)
        task = BackgroundTask(target=target, args=args, kwargs=kwargs)
        task.result_ready.connect(relay.deliver_result)
        task.error_occurred.connect(relay.deliver_error)

        self._relay = relay
        self._current_task = task
        task.start()
        return True

    def cleanup(self):
        """Cancel and wait for current task. Call from closeEvent."""
        if self._current_task is not None and self._current_task.isRunning():
            self._current_task.cancel()
            self._current_task.wait(CLEANUP_WAIT_MS)
        self._current_task = None
        self._relay = None
        self._in_flight = False
