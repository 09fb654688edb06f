#!/usr/bin/env python3
"""Win Apps Updater

PyQt front-end for `winget upgrade`.
- Refresh: list applications with an available update.
- Update selected: upgrade the checked applications one by one and report
  the outcome of each.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from PyQt5 import QtCore, QtWidgets

from winupd.domain.models import UpdatableApp, UpdateResult
from winupd.domain.report import format_report_lines
from winupd.domain.state_machine import MachineState, UpdateStateMachine
from winupd.services.settings_store import UpdaterSettings, load_settings
from winupd.services.update_worker import ListingWorker, UpgradeWorker

APP_VERSION = "0.1.0"
APP_NAME = f"Win Apps Updater v{APP_VERSION}"
TREE_COLUMNS = ("Name", "Id", "Version", "Available", "Source", "Result")
RESULT_COLUMN = TREE_COLUMNS.index("Result")


class MainWindow(QtWidgets.QWidget):
    def __init__(self, settings: UpdaterSettings) -> None:
        super().__init__()
        self.setWindowTitle(APP_NAME)
        self.resize(960, 640)

        self._settings = settings
        self._machine = UpdateStateMachine()
        self._worker: ListingWorker | UpgradeWorker | None = None
        self._worker_thread: QtCore.QThread | None = None
        self._populating = False
        self._last_report_lines: list[str] = []

        self.refresh_button = QtWidgets.QPushButton("Refresh")
        self.select_all_button = QtWidgets.QPushButton("Select all")
        self.deselect_all_button = QtWidgets.QPushButton("Deselect all")
        self.update_button = QtWidgets.QPushButton("Update selected")
        self.cancel_button = QtWidgets.QPushButton("Cancel")
        self.cancel_button.setEnabled(False)
        self.save_report_button = QtWidgets.QPushButton("Save Report (TXT)")
        self.save_report_button.setEnabled(False)

        self.status_label = QtWidgets.QLabel("")
        self.apps_tree = QtWidgets.QTreeWidget()
        self.apps_tree.setColumnCount(len(TREE_COLUMNS))
        self.apps_tree.setHeaderLabels(list(TREE_COLUMNS))
        self.apps_tree.setRootIsDecorated(False)
        self.apps_tree.itemChanged.connect(self._on_item_changed)

        self.output = QtWidgets.QPlainTextEdit()
        self.output.setReadOnly(True)

        buttons = QtWidgets.QHBoxLayout()
        for button in (
            self.refresh_button,
            self.select_all_button,
            self.deselect_all_button,
            self.update_button,
            self.cancel_button,
            self.save_report_button,
        ):
            buttons.addWidget(button)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addLayout(buttons)
        layout.addWidget(self.status_label)
        layout.addWidget(self.apps_tree, stretch=3)
        layout.addWidget(self.output, stretch=2)

        self.refresh_button.clicked.connect(self.refresh)
        self.select_all_button.clicked.connect(lambda: self._apply_selection(self._machine.select_all()))
        self.deselect_all_button.clicked.connect(lambda: self._apply_selection(self._machine.deselect_all()))
        self.update_button.clicked.connect(self._update_selected)
        self.cancel_button.clicked.connect(self._request_cancel)
        self.save_report_button.clicked.connect(self._save_report)

        self._sync_controls()

    def _append(self, text: str = "") -> None:
        self.output.appendPlainText(text)
        self.output.verticalScrollBar().setValue(self.output.verticalScrollBar().maximum())

    def _sync_controls(self) -> None:
        state = self._machine.state
        loaded = state is MachineState.LOADED
        self.refresh_button.setEnabled(state in (MachineState.IDLE, MachineState.LOADED))
        self.select_all_button.setEnabled(loaded)
        self.deselect_all_button.setEnabled(loaded)
        self.update_button.setEnabled(loaded)
        self.apps_tree.setEnabled(loaded)
        self.cancel_button.setEnabled(state is MachineState.RUNNING and self._worker is not None)
        self.save_report_button.setEnabled(bool(self._last_report_lines) and state is not MachineState.RUNNING)
        self.status_label.setText(self._machine.status_message)

    def _populate_tree(self) -> None:
        self._populating = True
        try:
            self.apps_tree.clear()
            for item in self._machine.items:
                app = item.app
                row = QtWidgets.QTreeWidgetItem(
                    [app.name, app.id, app.current_version, app.available_version, app.source, ""]
                )
                row.setFlags(row.flags() | QtCore.Qt.ItemIsUserCheckable)
                row.setCheckState(0, QtCore.Qt.Checked if item.selected else QtCore.Qt.Unchecked)
                self.apps_tree.addTopLevelItem(row)
            for column in range(len(TREE_COLUMNS)):
                self.apps_tree.resizeColumnToContents(column)
        finally:
            self._populating = False

    def _apply_selection(self, accepted: bool) -> None:
        if not accepted:
            return
        self._populating = True
        try:
            for index, item in enumerate(self._machine.items):
                row = self.apps_tree.topLevelItem(index)
                if row is not None:
                    row.setCheckState(0, QtCore.Qt.Checked if item.selected else QtCore.Qt.Unchecked)
        finally:
            self._populating = False

    def _on_item_changed(self, row: QtWidgets.QTreeWidgetItem, column: int) -> None:
        if self._populating or column != 0:
            return
        index = self.apps_tree.indexOfTopLevelItem(row)
        if not self._machine.toggle(index):
            # Rejected: put the checkbox back to what the machine holds.
            self._apply_selection(True)

    def _start_worker(self, worker: ListingWorker | UpgradeWorker) -> None:
        self._worker_thread = QtCore.QThread(self)
        self._worker = worker
        self._worker.moveToThread(self._worker_thread)

        worker.log_line.connect(self._append)
        self._worker_thread.started.connect(worker.run)
        worker.completed.connect(self._worker_thread.quit)
        worker.completed.connect(worker.deleteLater)
        self._worker_thread.finished.connect(self._worker_thread.deleteLater)
        self._worker_thread.start()

    def _release_worker(self) -> None:
        self._worker = None
        self._worker_thread = None

    def refresh(self) -> None:
        if self._machine.request_refresh():
            self._start_listing()
        self._sync_controls()

    def _start_listing(self) -> None:
        self.apps_tree.clear()
        worker = ListingWorker(self._settings)
        worker.loaded.connect(self._on_apps_loaded)
        worker.failed.connect(self._on_listing_failed)
        worker.completed.connect(self._on_listing_completed)
        self._start_worker(worker)

    def _on_apps_loaded(self, apps: list[UpdatableApp]) -> None:
        self._machine.finish_loading(apps)
        self._populate_tree()

    def _on_listing_failed(self, message: str) -> None:
        self._machine.fail_loading(message)

    def _on_listing_completed(self, _success: bool, _reason: str) -> None:
        self._release_worker()
        self._sync_controls()

    def _update_selected(self) -> None:
        if not self._machine.request_update():
            self._sync_controls()
            return

        names = [item.app.name for item in self._machine.items if item.selected]
        answer = QtWidgets.QMessageBox.question(
            self,
            "Confirm update",
            "The following applications will be updated:\n\n"
            + "\n".join(f"- {name}" for name in names)
            + "\n\nClose these applications before continuing.",
            QtWidgets.QMessageBox.Yes | QtWidgets.QMessageBox.No,
        )
        if answer != QtWidgets.QMessageBox.Yes:
            self._machine.cancel_confirmation()
            self._sync_controls()
            return

        app_ids = self._machine.confirm()
        self._append("=" * 60)
        self._append(f"Updating {len(app_ids)} app(s)")
        self._append("=" * 60)
        worker = UpgradeWorker(self._settings, app_ids)
        worker.item_finished.connect(self._on_item_finished)
        worker.progress.connect(self._on_progress)
        worker.completed.connect(self._on_upgrade_completed)
        self._start_worker(worker)
        self._sync_controls()

    def _on_item_finished(self, app_id: str, result: UpdateResult) -> None:
        self._machine.record_result(app_id, result)
        for index, item in enumerate(self._machine.items):
            if item.app.id == app_id:
                row = self.apps_tree.topLevelItem(index)
                if row is not None:
                    row.setText(RESULT_COLUMN, result.category)

    def _on_progress(self, _completed: int, _total: int) -> None:
        self._sync_controls()

    def _request_cancel(self) -> None:
        if not isinstance(self._worker, UpgradeWorker):
            return
        self._append("[INFO] Cancel requested. Stopping after current app...")
        self._worker.request_cancel()
        self._machine.request_cancel()
        self.cancel_button.setEnabled(False)

    def _on_upgrade_completed(self, success: bool, reason: str) -> None:
        if self._machine.state is MachineState.RUNNING:
            self._machine.finish_batch(None if success or reason == "cancelled" else reason)
        self._release_worker()
        report = self._machine.report
        if report is not None:
            self._last_report_lines = format_report_lines(report)
            for line in self._last_report_lines:
                self._append(line)
        self._sync_controls()
        QtCore.QTimer.singleShot(0, self._show_results)

    def _show_results(self) -> None:
        if self._machine.state is not MachineState.REPORT_READY:
            return
        QtWidgets.QMessageBox.information(self, "Update results", "\n".join(self._last_report_lines))
        if self._machine.acknowledge_report():
            self._start_listing()
        self._sync_controls()

    def _save_report(self) -> None:
        selected_path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self,
            "Save update report",
            "update_report.txt",
            "Text files (*.txt)",
        )
        if not selected_path:
            return
        try:
            Path(selected_path).write_text("\n".join(self._last_report_lines).rstrip() + "\n", encoding="utf-8")
        except OSError as exc:
            QtWidgets.QMessageBox.critical(self, "Save failed", str(exc))
            return
        self._append(f"[INFO] Report saved to {selected_path}")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QtWidgets.QApplication(sys.argv)
    window = MainWindow(load_settings())
    window.show()
    window.refresh()
    return app.exec_()


if __name__ == "__main__":
    raise SystemExit(main())
