"""
Logging for the Hako compiler.

Debug output is gated by a process-wide verbose flag; warnings and errors
that must not abort a run go through a Console sink handed to the pipeline.
"""
import sys

# Global verbose flag
_VERBOSE = False


def set_verbose(value):
    """Set the global verbose flag."""
    global _VERBOSE
    _VERBOSE = value


def debug_log(message):
    """Log a debug message to stderr if verbose mode is enabled."""
    if _VERBOSE:
        print(f"\033[94mDEBUG:\033[0m {message}", file=sys.stderr)


class Console:
    """Diagnostics sink. Receives warnings without aborting the run."""

    def __init__(self, stream=None):
        self._stream = stream
        self.warnings = []

    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stderr

    def log(self, message):
        print(f"\033[92m\033[1mINFO:\033[0m {message}", file=self.stream)

    def warn(self, message):
        self.warnings.append(message)
        print(f"\033[93m\033[1mWARNING:\033[0m {message}", file=self.stream)

    def error(self, message):
        print(f"\033[91m\033[1mERROR:\033[0m {message}", file=self.stream)
