"""
Tests for mourne_metrics/utils/error_formatting.py
"""

from mourne_metrics.persistence.sources import FetchError, SourceError, TableNotFoundError
from mourne_metrics.utils.error_formatting import ErrorContext, ErrorFormatter, ErrorSeverity


class TestFetchErrors:

    def test_table_not_found(self):
        ctx = ErrorFormatter.format_fetch_error(TableNotFoundError("No snapshot for profiles"), "mpi")
        assert ctx.error_code == "SRC_001"
        assert ctx.severity is ErrorSeverity.ERROR
        assert ctx.context == {"View": "mpi"}

    def test_fetch_error_names_table(self):
        exc = FetchError("timeout", table="service_shifts")
        ctx = ErrorFormatter.format_fetch_error(exc, "service", {"Range": "Last 60 days"})
        assert ctx.error_code == "SRC_002"
        assert ctx.context["Table"] == "service_shifts"
        assert ctx.context["Range"] == "Last 60 days"
        assert "service" in ctx.message

    def test_generic_source_error(self):
        ctx = ErrorFormatter.format_fetch_error(SourceError("credentials missing"), "cost")
        assert ctx.error_code == "SRC_999"

    def test_unexpected_error_is_critical(self):
        ctx = ErrorFormatter.format_fetch_error(KeyError("x"), "hub")
        assert ctx.error_code == "SRC_UNKNOWN"
        assert ctx.severity is ErrorSeverity.CRITICAL


class TestValidationErrors:

    def test_date_hint(self):
        ctx = ErrorFormatter.format_validation_error("--from", "03/01/2026", "date format", "YYYY-MM-DD")
        assert ctx.error_code == "VAL_001"
        assert any("YYYY-MM-DD" in step for step in ctx.recovery_steps)


class TestErrorContext:

    def _ctx(self):
        return ErrorContext(
            message="Could not load data",
            severity=ErrorSeverity.ERROR,
            technical_details="FetchError: timeout",
            context={"View": "mpi", "Store": None},
            recovery_steps=["Retry"],
            error_code="SRC_002",
        )

    def test_display(self):
        text = self._ctx().format_for_display()
        assert text.splitlines()[0] == "Could not load data"
        assert "View: mpi" in text
        assert "Store" not in text
        assert "1. Retry" in text
        assert "Technical details" not in text
        assert text.endswith("Error code: SRC_002")

    def test_display_technical(self):
        assert "FetchError: timeout" in self._ctx().format_for_display(include_technical=True)

    def test_log_line(self):
        line = self._ctx().format_for_log()
        assert line.startswith("[ERROR] Could not load data")
        assert "View=mpi" in line
