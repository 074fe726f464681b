"""Unit tests for console narration."""

import logging


class TestProgressReporter:
    """Tests for ProgressReporter."""

    def test_report_indents(self, reporter, console_buffer):
        reporter.report("Create resource group...", indent=1)

        line = console_buffer.getvalue()
        assert line.strip() == "Create resource group..."
        assert line[0].isspace()

    def test_warn_prints_once_and_logs_at_debug(self, reporter, console_buffer, caplog):
        caplog.set_level(logging.DEBUG, logger="azvm.progress")

        reporter.warn("cleanup failed")

        assert console_buffer.getvalue() == "Warning: cleanup failed\n"
        records = [r for r in caplog.records if r.name == "azvm.progress"]
        assert [r.levelno for r in records] == [logging.DEBUG]
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
