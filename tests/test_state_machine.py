import unittest

from winupd.domain.models import ResultKind, UpdatableApp, UpdateResult
from winupd.domain.state_machine import MachineState, UpdateStateMachine


def _apps(count: int) -> list[UpdatableApp]:
    return [UpdatableApp(f"App {idx}", f"Vendor.App{idx}", "1.0", "2.0", "winget") for idx in range(count)]


def _loaded_machine(count: int = 3) -> UpdateStateMachine:
    machine = UpdateStateMachine()
    machine.request_refresh()
    machine.finish_loading(_apps(count))
    return machine


def _running_machine(count: int = 3) -> UpdateStateMachine:
    machine = _loaded_machine(count)
    machine.select_all()
    machine.request_update()
    machine.confirm()
    return machine


class LoadingTests(unittest.TestCase):
    def test_refresh_then_load(self) -> None:
        machine = UpdateStateMachine()
        self.assertIs(MachineState.IDLE, machine.state)
        self.assertTrue(machine.request_refresh())
        self.assertIs(MachineState.LOADING, machine.state)
        self.assertTrue(machine.finish_loading(_apps(2)))
        self.assertIs(MachineState.LOADED, machine.state)
        self.assertEqual(2, len(machine.items))
        self.assertFalse(any(item.selected for item in machine.items))

    def test_empty_listing_is_not_an_error(self) -> None:
        machine = UpdateStateMachine()
        machine.request_refresh()
        machine.finish_loading([])
        self.assertIs(MachineState.LOADED, machine.state)
        self.assertIsNone(machine.error)
        self.assertEqual("No updates available", machine.status_message)

    def test_listing_failure_returns_to_idle(self) -> None:
        machine = UpdateStateMachine()
        machine.request_refresh()
        self.assertTrue(machine.fail_loading("winget not found"))
        self.assertIs(MachineState.IDLE, machine.state)
        self.assertEqual("winget not found", machine.error)
        self.assertTrue(machine.request_refresh())

    def test_reload_resets_selection(self) -> None:
        machine = _loaded_machine()
        machine.select_all()
        machine.request_refresh()
        machine.finish_loading(_apps(3))
        self.assertEqual([], machine.selected_ids)


class SelectionTests(unittest.TestCase):
    def test_toggle_changes_only_that_item(self) -> None:
        machine = _loaded_machine()
        self.assertTrue(machine.toggle(1))
        self.assertEqual(["Vendor.App1"], machine.selected_ids)
        self.assertTrue(machine.toggle(1))
        self.assertEqual([], machine.selected_ids)

    def test_toggle_out_of_range_is_rejected(self) -> None:
        machine = _loaded_machine()
        self.assertFalse(machine.toggle(7))

    def test_update_without_selection_is_rejected(self) -> None:
        machine = _loaded_machine()
        self.assertFalse(machine.request_update())
        self.assertIs(MachineState.LOADED, machine.state)
        self.assertEqual("No apps selected", machine.status_message)

    def test_cancel_confirmation_has_no_side_effects(self) -> None:
        machine = _loaded_machine()
        machine.toggle(0)
        self.assertTrue(machine.request_update())
        self.assertIs(MachineState.CONFIRMING, machine.state)
        self.assertTrue(machine.cancel_confirmation())
        self.assertIs(MachineState.LOADED, machine.state)
        self.assertEqual(["Vendor.App0"], machine.selected_ids)
        self.assertIsNone(machine.report)

    def test_confirm_captures_list_order(self) -> None:
        machine = _loaded_machine()
        machine.toggle(2)
        machine.toggle(0)
        machine.request_update()
        self.assertEqual(("Vendor.App0", "Vendor.App2"), machine.confirm())
        self.assertIs(MachineState.RUNNING, machine.state)
        self.assertEqual((0, 2), machine.progress)


class BatchTests(unittest.TestCase):
    def test_runs_each_selected_item_once_in_order(self) -> None:
        machine = _running_machine(4)
        executed: list[str] = []
        for app_id in machine.pending_ids:
            executed.append(app_id)
            machine.record_result(app_id, UpdateResult.success())
            completed, total = machine.progress
            self.assertEqual(len(executed), completed)
            self.assertLessEqual(completed, total)

        self.assertEqual(["Vendor.App0", "Vendor.App1", "Vendor.App2", "Vendor.App3"], executed)
        self.assertIs(MachineState.REPORT_READY, machine.state)
        report = machine.report
        assert report is not None
        self.assertEqual(executed, [app_id for app_id, _result in report.results])
        self.assertFalse(report.cancelled)

    def test_failure_does_not_stop_later_items(self) -> None:
        machine = _running_machine(3)
        outcomes = [
            UpdateResult.failure("Installer failed"),
            UpdateResult.needs_app_closed("currently in use"),
            UpdateResult.success(),
        ]
        for app_id, outcome in zip(machine.pending_ids, outcomes):
            machine.record_result(app_id, outcome)
        report = machine.report
        assert report is not None
        self.assertEqual(
            [ResultKind.FAILURE, ResultKind.NEEDS_APP_CLOSED, ResultKind.SUCCESS],
            [result.kind for _app_id, result in report.results],
        )

    def test_results_are_stored_on_items(self) -> None:
        machine = _running_machine(1)
        machine.record_result("Vendor.App0", UpdateResult.success())
        self.assertIs(ResultKind.SUCCESS, machine.items[0].result.kind)
        with self.assertRaises(ValueError):
            machine.items[0].record_result(UpdateResult.success())

    def test_inputs_are_ignored_while_running(self) -> None:
        machine = _running_machine(2)
        before = (machine.selected_ids, machine.pending_ids, machine.progress)
        self.assertFalse(machine.toggle(0))
        self.assertFalse(machine.deselect_all())
        self.assertFalse(machine.select_all())
        self.assertFalse(machine.request_refresh())
        self.assertFalse(machine.request_update())
        self.assertEqual((), machine.confirm())
        self.assertEqual(before, (machine.selected_ids, machine.pending_ids, machine.progress))
        self.assertIs(MachineState.RUNNING, machine.state)

    def test_out_of_order_result_is_an_error(self) -> None:
        machine = _running_machine(2)
        with self.assertRaises(ValueError):
            machine.record_result("Vendor.App1", UpdateResult.success())
        self.assertEqual((0, 2), machine.progress)

    def test_id_listed_twice_runs_once(self) -> None:
        twice = UpdatableApp("Pinned App", "Dup.Id", "1.0", "2.0", "winget")
        machine = UpdateStateMachine()
        machine.request_refresh()
        machine.finish_loading([twice, _apps(1)[0], twice])
        machine.select_all()
        machine.request_update()
        self.assertEqual(("Dup.Id", "Vendor.App0"), machine.confirm())

        self.assertTrue(machine.record_result("Dup.Id", UpdateResult.success()))
        self.assertTrue(machine.record_result("Vendor.App0", UpdateResult.success()))
        self.assertIs(MachineState.REPORT_READY, machine.state)
        report = machine.report
        assert report is not None
        self.assertEqual(["Dup.Id", "Vendor.App0"], [app_id for app_id, _result in report.results])
        self.assertEqual(2, report.total)
        self.assertIs(ResultKind.SUCCESS, machine.items[0].result.kind)
        self.assertIs(ResultKind.SUCCESS, machine.items[2].result.kind)

    def test_finish_batch_without_batch_is_rejected(self) -> None:
        machine = _loaded_machine()
        self.assertFalse(machine.finish_batch("Unable to start winget"))
        self.assertIsNone(machine.report)

    def test_cancel_is_honored_at_next_item(self) -> None:
        machine = _running_machine(3)
        machine.record_result("Vendor.App0", UpdateResult.success())
        self.assertTrue(machine.request_cancel())
        self.assertIs(MachineState.RUNNING, machine.state)
        self.assertTrue(machine.finish_batch())
        report = machine.report
        assert report is not None
        self.assertTrue(report.cancelled)
        self.assertEqual({"Vendor.App0": UpdateResult.success()}, report.as_dict())
        self.assertEqual(3, report.total)

    def test_run_level_error_keeps_recorded_results(self) -> None:
        machine = _running_machine(2)
        machine.record_result("Vendor.App0", UpdateResult.success())
        machine.finish_batch("Unable to start winget")
        report = machine.report
        assert report is not None
        self.assertEqual("Unable to start winget", report.error)
        self.assertEqual(1, len(report.results))

    def test_acknowledge_report_reloads(self) -> None:
        machine = _running_machine(1)
        machine.record_result("Vendor.App0", UpdateResult.success())
        self.assertTrue(machine.acknowledge_report())
        self.assertIs(MachineState.LOADING, machine.state)
        self.assertEqual([], machine.selected_ids)
        self.assertEqual((0, 0), machine.progress)


if __name__ == "__main__":
    unittest.main()
