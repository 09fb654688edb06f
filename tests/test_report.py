import unittest

from winupd.domain.models import BatchReport, BatchRun, ResultKind, UpdateResult
from winupd.domain.report import CLOSE_AND_RETRY_HINT, format_report_lines, summarize_report


def _report(cancel_after: int | None = None) -> BatchReport:
    batch = BatchRun(("A.One", "B.Two", "C.Three", "D.Four"))
    outcomes = (
        UpdateResult.success("Updated successfully"),
        UpdateResult.failure("Installer failed with exit code: 1603"),
        UpdateResult.needs_app_closed("Close the application"),
        UpdateResult.already_up_to_date("No applicable update found."),
    )
    for app_id, outcome in zip(batch.ids, outcomes):
        if cancel_after is not None and batch.completed == cancel_after:
            batch.cancel_requested = True
            break
        batch.record(app_id, outcome)
    return BatchReport.from_batch(batch)


class ReportFormattingTests(unittest.TestCase):
    def test_lines_are_categorized(self) -> None:
        lines = format_report_lines(_report())
        self.assertEqual("[OK] A.One - Updated successfully", lines[0])
        self.assertEqual("[FAIL] B.Two - Installer failed with exit code: 1603", lines[1])
        self.assertTrue(lines[2].startswith("[WARN] C.Three"))
        self.assertIn(CLOSE_AND_RETRY_HINT, lines[2])
        self.assertEqual("[INFO] D.Four - No applicable update found.", lines[3])

    def test_summary_counts(self) -> None:
        report = _report()
        self.assertEqual(1, report.counts()[ResultKind.FAILURE])
        self.assertEqual(
            "4/4 processed: 1 updated, 1 already up to date, 1 need closing, 1 failed",
            summarize_report(report),
        )

    def test_cancelled_report(self) -> None:
        report = _report(cancel_after=2)
        self.assertTrue(report.cancelled)
        self.assertTrue(summarize_report(report).startswith("2/4 processed"))
        self.assertTrue(summarize_report(report).endswith("(cancelled)"))

    def test_error_line(self) -> None:
        batch = BatchRun(("A.One",))
        lines = format_report_lines(BatchReport.from_batch(batch, error="Unable to start winget"))
        self.assertIn("[ERROR] Unable to start winget", lines)


if __name__ == "__main__":
    unittest.main()
