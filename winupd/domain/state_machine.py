from __future__ import annotations

from enum import Enum
from typing import Sequence

from .models import AppItem, BatchReport, BatchRun, UpdatableApp, UpdateResult


class MachineState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    CONFIRMING = "confirming"
    RUNNING = "running"
    REPORT_READY = "report_ready"


class UpdateStateMachine:
    """Owns the app list and the running batch.

    Every input returns True when accepted. Rejected inputs change nothing,
    which is how selection and refresh are locked out during a batch.
    """

    def __init__(self) -> None:
        self._state = MachineState.IDLE
        self._items: list[AppItem] = []
        self._batch: BatchRun | None = None
        self._report: BatchReport | None = None
        self.status_message = ""
        self.error: str | None = None

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def items(self) -> tuple[AppItem, ...]:
        return tuple(self._items)

    @property
    def selected_ids(self) -> list[str]:
        return [item.app.id for item in self._items if item.selected]

    @property
    def pending_ids(self) -> tuple[str, ...]:
        return self._batch.ids if self._batch else ()

    @property
    def progress(self) -> tuple[int, int]:
        if self._batch is None:
            return 0, 0
        return self._batch.completed, self._batch.total

    @property
    def report(self) -> BatchReport | None:
        return self._report

    def request_refresh(self) -> bool:
        if self._state not in (MachineState.IDLE, MachineState.LOADED):
            return False
        self._state = MachineState.LOADING
        self.status_message = "Loading updatable apps..."
        return True

    def finish_loading(self, apps: Sequence[UpdatableApp]) -> bool:
        if self._state is not MachineState.LOADING:
            return False
        self._items = [AppItem(app) for app in apps]
        self.error = None
        self._state = MachineState.LOADED
        if self._items:
            self.status_message = f"{len(self._items)} app(s) available for update"
        else:
            self.status_message = "No updates available"
        return True

    def fail_loading(self, message: str) -> bool:
        if self._state is not MachineState.LOADING:
            return False
        self.error = message
        self.status_message = f"Error: {message}"
        self._state = MachineState.IDLE
        return True

    def toggle(self, index: int) -> bool:
        if self._state is not MachineState.LOADED or not 0 <= index < len(self._items):
            return False
        item = self._items[index]
        item.selected = not item.selected
        return True

    def select_all(self) -> bool:
        return self._set_all_selected(True)

    def deselect_all(self) -> bool:
        return self._set_all_selected(False)

    def _set_all_selected(self, selected: bool) -> bool:
        if self._state is not MachineState.LOADED:
            return False
        for item in self._items:
            item.selected = selected
        return True

    def request_update(self) -> bool:
        if self._state is not MachineState.LOADED:
            return False
        if not self.selected_ids:
            self.status_message = "No apps selected"
            return False
        self._state = MachineState.CONFIRMING
        return True

    def cancel_confirmation(self) -> bool:
        if self._state is not MachineState.CONFIRMING:
            return False
        self._state = MachineState.LOADED
        self.status_message = "Update cancelled"
        return True

    def confirm(self) -> tuple[str, ...]:
        """Start the batch with the selection in list order; returns the ids to run.

        Each id appears once even when winget listed it in two tables. The
        caller runs the ids in this order and reports each one through
        ``record_result``.
        """
        if self._state is not MachineState.CONFIRMING:
            return ()
        self._batch = BatchRun(tuple(dict.fromkeys(self.selected_ids)))
        self._report = None
        self._state = MachineState.RUNNING
        self.status_message = f"Updating {self._batch.total} app(s)..."
        return self._batch.ids

    def record_result(self, app_id: str, result: UpdateResult) -> bool:
        """Store the outcome of the next id in the batch.

        Raises ValueError when ``app_id`` is not the id the batch expects next.
        """
        batch = self._batch
        if self._state is not MachineState.RUNNING or batch is None:
            return False
        batch.record(app_id, result)
        for item in self._items:
            if item.app.id == app_id:
                item.record_result(result)
        completed, total = self.progress
        self.status_message = f"Updating... {completed}/{total}"
        if batch.is_finished:
            self._finish(batch, None)
        return True

    def request_cancel(self) -> bool:
        if self._state is not MachineState.RUNNING or self._batch is None:
            return False
        self._batch.cancel_requested = True
        self.status_message = "Cancel requested, stopping after the current app..."
        return True

    def finish_batch(self, error: str | None = None) -> bool:
        """End a batch early (cancelled or run-level error), keeping recorded results."""
        if self._state is not MachineState.RUNNING or self._batch is None:
            return False
        self._finish(self._batch, error)
        return True

    def _finish(self, batch: BatchRun, error: str | None) -> None:
        self._report = BatchReport.from_batch(batch, error=error)
        self._state = MachineState.REPORT_READY
        if error:
            self.status_message = f"Update stopped: {error}"
        elif self._report.cancelled:
            self.status_message = "Update cancelled"
        else:
            self.status_message = "Update complete"

    def acknowledge_report(self) -> bool:
        """Close the report; versions changed so the list is reloaded."""
        if self._state is not MachineState.REPORT_READY:
            return False
        self._batch = None
        for item in self._items:
            item.selected = False
        self._state = MachineState.LOADING
        self.status_message = "Loading updatable apps..."
        return True
