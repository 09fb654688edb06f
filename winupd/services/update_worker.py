from __future__ import annotations

from typing import Sequence

from PyQt5 import QtCore

from winupd.domain.models import ResultKind
from winupd.services.command_runner import CommandUnavailableError, format_command
from winupd.services.settings_store import UpdaterSettings
from winupd.services.upgrade_executor import UpgradeExecutor
from winupd.services.winget import (
    ListingUnavailableError,
    build_listing_command,
    build_upgrade_command,
    fetch_updatable_apps,
)

_STATUS_BY_KIND = {
    ResultKind.SUCCESS: "OK",
    ResultKind.FAILURE: "FAIL",
    ResultKind.NEEDS_APP_CLOSED: "WARN (application must be closed)",
    ResultKind.ALREADY_UP_TO_DATE: "INFO (already up to date)",
}


class ListingWorker(QtCore.QObject):
    log_line = QtCore.pyqtSignal(str)
    loaded = QtCore.pyqtSignal(object)
    failed = QtCore.pyqtSignal(str)
    completed = QtCore.pyqtSignal(bool, str)

    def __init__(self, settings: UpdaterSettings) -> None:
        super().__init__()
        self._settings = settings

    @QtCore.pyqtSlot()
    def run(self) -> None:
        self.log_line.emit(f"$ {format_command(build_listing_command(self._settings))}")
        try:
            apps = fetch_updatable_apps(self._settings)
        except ListingUnavailableError as exc:
            self.log_line.emit(f"    -> FAIL ({exc})")
            self.failed.emit(str(exc))
            self.completed.emit(False, "failed")
            return
        except Exception as exc:  # safeguard background thread
            self.log_line.emit(f"[ERROR] Unexpected failure: {exc}")
            self.failed.emit(f"Unexpected failure: {exc}")
            self.completed.emit(False, "failed")
            return

        self.log_line.emit(f"    -> OK ({len(apps)} app(s) with updates)")
        self.loaded.emit(apps)
        self.completed.emit(True, "done")


class UpgradeWorker(QtCore.QObject):
    """Upgrades the given ids one after the other.

    Cancellation is only checked between apps; an upgrade in progress always
    runs to completion.
    """

    log_line = QtCore.pyqtSignal(str)
    item_started = QtCore.pyqtSignal(str, int, int)
    item_finished = QtCore.pyqtSignal(str, object)
    progress = QtCore.pyqtSignal(int, int)
    completed = QtCore.pyqtSignal(bool, str)

    def __init__(
        self,
        settings: UpdaterSettings,
        app_ids: Sequence[str],
        executor: UpgradeExecutor | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings
        self._app_ids = list(app_ids)
        self._executor = executor or UpgradeExecutor(settings)
        self._cancel_requested = False

    @QtCore.pyqtSlot()
    def request_cancel(self) -> None:
        self._cancel_requested = True

    def _cancelled(self) -> bool:
        return self._cancel_requested

    @QtCore.pyqtSlot()
    def run(self) -> None:
        try:
            self._run_batch()
        except Exception as exc:  # safeguard background thread
            self.log_line.emit(f"[ERROR] Unexpected failure: {exc}")
            self.completed.emit(False, f"Unexpected failure: {exc}")

    def _run_batch(self) -> None:
        total = len(self._app_ids)
        for idx, app_id in enumerate(self._app_ids, start=1):
            if self._cancelled():
                self.log_line.emit("Cancelled before remaining apps were started.")
                self.completed.emit(False, "cancelled")
                return

            step_name = f"[{idx}/{total}] {app_id}"
            self.item_started.emit(app_id, idx, total)
            self.log_line.emit(step_name)
            self.log_line.emit(f"  $ {format_command(build_upgrade_command(self._settings, app_id))}")
            try:
                result = self._executor.execute(app_id)
            except CommandUnavailableError as exc:
                self.log_line.emit(f"    -> FAIL ({exc})")
                self.completed.emit(False, str(exc))
                return

            self.item_finished.emit(app_id, result)
            self.progress.emit(idx, total)
            self.log_line.emit(f"    -> {_STATUS_BY_KIND[result.kind]}")
            if result.message:
                self.log_line.emit(f"    {result.message}")
            self.log_line.emit("")

        self.completed.emit(True, "done")
