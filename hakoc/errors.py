"""
Error handling utilities for the Hako compiler.

Every failure the compiler can attribute to a declaration is a
HakoCompileError subclass; the orchestrator turns them into Diagnostic
records instead of letting them escape the run.
"""
import threading
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class DiagnosticKind(str, Enum):
    """Failure taxonomy reported in the run-wide diagnostics list."""
    RESOLUTION = "ResolutionError"
    METADATA = "MetadataError"
    PARSE = "ParseError"
    SCHEMA = "SchemaError"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class HakoCompileError(Exception):
    """Compilation error with source location and a hint on how to fix it."""
    kind = DiagnosticKind.METADATA

    def __init__(self, message, line_number=None, column=None, context=None, suggestion=None,
                 file_path=None, symbol=None):
        self.message = message
        self.line_number = line_number
        self.column = column
        self.context = context  # The offending line
        self.suggestion = suggestion  # How to fix it
        self.file_path = file_path
        self.symbol = symbol
        super().__init__(self._format_error())

    def _format_error(self):
        """Format the error message with location, context and suggestion."""
        lines = [f"{self.kind.value}"]
        if self.file_path:
            lines.append(f" in {self.file_path}")
        if self.line_number:
            lines.append(f" at line {self.line_number}")
            if self.column:
                lines.append(f", column {self.column}")
        lines.append(": ")
        lines.append(self.message)
        if self.context:
            lines.append(f"\n   > {self.context}")
        if self.suggestion:
            lines.append(f"\n   hint: {self.suggestion}")
        return "".join(lines)

    def to_diagnostic(self, file_path=None, symbol=None, severity=Severity.ERROR):
        return Diagnostic(
            file=self.file_path or file_path or "",
            symbol=symbol or self.symbol,
            kind=self.kind,
            severity=severity,
            message=self.message,
            line=self.line_number,
            column=self.column,
        )


class ResolutionError(HakoCompileError):
    """A module or exported name that does not exist."""
    kind = DiagnosticKind.RESOLUTION


class MetadataError(HakoCompileError):
    """A malformed or missing required declaration field."""
    kind = DiagnosticKind.METADATA


class ParseError(HakoCompileError):
    """Source, template markup or binding expression syntax error."""
    kind = DiagnosticKind.PARSE


class SchemaError(HakoCompileError):
    """Element or property unknown to the element schema registry."""
    kind = DiagnosticKind.SCHEMA


class ProgramError(ResolutionError):
    """Program level resolution failure, e.g. a missing entry file. Fatal to the run."""


class CompilationCancelled(Exception):
    """Raised when a run is cancelled while work is still outstanding."""


class CancellationToken:
    """Shared flag checked around every resource load of a run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise CompilationCancelled("Compilation was cancelled")


class Diagnostic(BaseModel):
    """One entry of the run-wide diagnostics list."""
    file: str
    symbol: Optional[str] = None
    kind: DiagnosticKind
    severity: Severity = Severity.ERROR
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self):
        location = self.file
        if self.line:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        owner = f" [{self.symbol}]" if self.symbol else ""
        return f"{location}{owner} {self.severity.value} {self.kind.value}: {self.message}"


def get_line_context(source_code, line_number):
    """Extract the line of code from source by line number (1-based)."""
    if not source_code or line_number is None:
        return None
    source_lines = source_code.split('\n')
    if 0 < line_number <= len(source_lines):
        return source_lines[line_number - 1].strip()
    return None


def merge_diagnostics(*groups):
    """Concatenate diagnostic lists, dropping exact duplicates but keeping order."""
    seen = set()
    merged = []
    for group in groups:
        for diagnostic in group:
            key = (diagnostic.file, diagnostic.symbol, diagnostic.kind, diagnostic.severity,
                   diagnostic.message, diagnostic.line, diagnostic.column)
            if key in seen:
                continue
            seen.add(key)
            merged.append(diagnostic)
    return merged
