"""
Error formatting for dashboard banners and the report CLI.

Turns record-source and configuration exceptions into short, actionable
messages plus a structured line for the log file.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# Error Severity Levels
# ============================================================

class ErrorSeverity(Enum):
    """Error severity classification for presentation."""

    INFO = "info"           # Informational (no action needed)
    WARNING = "warning"     # Caution (optional action)
    ERROR = "error"         # Error (action required)
    CRITICAL = "critical"   # Critical (system-level issue)


# ============================================================
# Error Context
# ============================================================

@dataclass
class ErrorContext:
    """
    Structured error context for user-facing messaging.

    Attributes:
        message: User-facing error description
        severity: Error severity level
        technical_details: Technical error info (for logs/debugging)
        context: Additional context (view, table, date range)
        recovery_steps: List of recovery actions the user can take
        error_code: Optional error code for support
    """
    message: str
    severity: ErrorSeverity
    technical_details: str
    context: Dict[str, Any] = field(default_factory=dict)
    recovery_steps: List[str] = field(default_factory=list)
    error_code: Optional[str] = None

    def format_for_display(self, include_technical: bool = False) -> str:
        """
        Format error for a banner or terminal.

        Args:
            include_technical: Include technical details in message
        """
        lines = [self.message]

        if self.context:
            lines.append("")
            lines.append("Details:")
            for key, value in self.context.items():
                if value is not None:
                    lines.append(f"  • {key}: {value}")

        if self.recovery_steps:
            lines.append("")
            lines.append("What to try:")
            for i, step in enumerate(self.recovery_steps, 1):
                lines.append(f"  {i}. {step}")

        if include_technical and self.technical_details:
            lines.append("")
            lines.append("Technical details:")
            lines.append(f"  {self.technical_details}")

        if self.error_code:
            lines.append("")
            lines.append(f"Error code: {self.error_code}")

        return "\n".join(lines)

    def format_for_log(self) -> str:
        """Format error for structured logging."""
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items() if v is not None)
        return (
            f"[{self.severity.value.upper()}] {self.message} | "
            f"Context: {context_str} | Technical: {self.technical_details}"
        )


# ============================================================
# Error Formatter
# ============================================================

class ErrorFormatter:
    """Transforms exceptions into ErrorContext objects."""

    @staticmethod
    def format_fetch_error(
        exc: Exception,
        view: str,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        """
        Format a failure to load a dashboard's snapshot.

        Args:
            exc: The exception raised by the record source
            view: Dashboard / report that was loading (e.g. "mpi")
            additional_context: Extra key/values (range, store)
        """
        from ..persistence.sources import FetchError, SourceError, TableNotFoundError

        context: Dict[str, Any] = {"View": view}
        table = getattr(exc, "table", None)
        if table:
            context["Table"] = table
        if additional_context:
            context.update(additional_context)

        if isinstance(exc, TableNotFoundError):
            return ErrorContext(
                message=f"Data table not available: {exc}",
                severity=ErrorSeverity.ERROR,
                technical_details=f"TableNotFoundError: {exc}",
                context=context,
                recovery_steps=[
                    "Check the data directory contains the exported <table>.csv files",
                    "Or switch to the hosted source (--source supabase)",
                ],
                error_code="SRC_001",
            )

        if isinstance(exc, FetchError):
            return ErrorContext(
                message=f"Could not load data for the {view} view",
                severity=ErrorSeverity.ERROR,
                technical_details=f"FetchError: {exc}",
                context=context,
                recovery_steps=[
                    "Check the network connection",
                    "Check SUPABASE_URL / SUPABASE_KEY",
                    "Retry; dashboards refresh automatically every minute",
                ],
                error_code="SRC_002",
            )

        if isinstance(exc, SourceError):
            return ErrorContext(
                message=f"Data source error: {exc}",
                severity=ErrorSeverity.ERROR,
                technical_details=f"{type(exc).__name__}: {exc}",
                context=context,
                recovery_steps=["Retry the operation"],
                error_code="SRC_999",
            )

        return ErrorContext(
            message=f"Unexpected error while building the {view} view",
            severity=ErrorSeverity.CRITICAL,
            technical_details=f"{type(exc).__name__}: {exc}",
            context=context,
            recovery_steps=[
                "Retry the operation",
                "If the error persists, check the log file",
            ],
            error_code="SRC_UNKNOWN",
        )

    @staticmethod
    def format_validation_error(
        field_name: str,
        value: Any,
        constraint: str,
        expected: Optional[str] = None,
    ) -> ErrorContext:
        """Format a rejected option (range mode, profile name, date)."""
        message = f"Invalid value for '{field_name}'"
        if expected:
            message += f": {expected}"

        recovery_steps = [f"Check the value given for '{field_name}'"]
        if "date" in constraint.lower():
            recovery_steps.append("Date format: YYYY-MM-DD (e.g. 2026-01-28)")

        return ErrorContext(
            message=message,
            severity=ErrorSeverity.WARNING,
            technical_details=f"ValidationError: field={field_name}, value={value}, constraint={constraint}",
            context={"Field": field_name, "Value": str(value), "Constraint": constraint},
            recovery_steps=recovery_steps,
            error_code="VAL_001",
        )
