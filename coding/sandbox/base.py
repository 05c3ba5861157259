"""
Sandbox contract: run one (code, stdin) pair for a language and return the
captured output, or raise a typed SandboxError.
"""
import re
from dataclasses import dataclass


class ErrorKind:
    COMPILE_ERROR = 'CompileError'
    RUNTIME_ERROR = 'RuntimeError'
    TIMEOUT = 'Timeout'
    MEMORY_EXCEEDED = 'MemoryExceeded'
    SANDBOX_FAULT = 'SandboxFault'

    ALL = (COMPILE_ERROR, RUNTIME_ERROR, TIMEOUT, MEMORY_EXCEEDED, SANDBOX_FAULT)


class SandboxError(Exception):
    """Base for per-execution failures. Never escalated past a single test case."""
    kind = None

    def __init__(self, message, stderr='', duration_ms=0):
        super().__init__(message)
        self.message = message
        self.stderr = stderr or ''
        self.duration_ms = duration_ms


class CompilationFailed(SandboxError):
    kind = ErrorKind.COMPILE_ERROR


class RuntimeFailure(SandboxError):
    kind = ErrorKind.RUNTIME_ERROR

    def __init__(self, message, stderr='', duration_ms=0, exit_code=None, stdout=''):
        super().__init__(message, stderr=stderr, duration_ms=duration_ms)
        self.exit_code = exit_code
        self.stdout = stdout or ''


class ExecutionTimedOut(SandboxError):
    kind = ErrorKind.TIMEOUT


class MemoryLimitExceeded(SandboxError):
    kind = ErrorKind.MEMORY_EXCEEDED


class SandboxFault(SandboxError):
    """Infrastructure failure (toolchain missing, daemon down). Retryable."""
    kind = ErrorKind.SANDBOX_FAULT


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int


# Last traceback line of a Python program that ran out of memory
PYTHON_MEMORY_ERROR = re.compile(r'^MemoryError\b')

# Fatal banners the other runtimes print when they run out of memory
MEMORY_BANNERS = (
    re.compile(r'^Exception in thread "[^"]*" java\.lang\.OutOfMemoryError\b'),
    re.compile(r'^FATAL ERROR: .*JavaScript heap out of memory'),
    re.compile(r"^terminate called after throwing an instance of 'std::bad_alloc'"),
)


def looks_like_memory_failure(stderr):
    """
    True when the runtime itself reported running out of memory.

    A Python traceback is judged by its last line, other runtimes by a line
    starting with their fatal banner. Text inside user exception messages
    does not match.
    """
    lines = [line.rstrip() for line in (stderr or '').splitlines() if line.strip()]
    if not lines:
        return False
    if PYTHON_MEMORY_ERROR.match(lines[-1]):
        return True
    return any(banner.match(line) for line in lines for banner in MEMORY_BANNERS)


def truncate(text, limit):
    """Cap captured output; limit is in characters of decoded text."""
    if text is None:
        return ''
    if limit and len(text) > limit:
        return text[:limit] + '\n...[output truncated]'
    return text


class Sandbox:
    """Base class for execution backends."""

    name = 'base'

    def execute(self, code, stdin, language, timeout, memory_limit_mb):
        """
        Run `code` in `language` with `stdin` as standard input.

        Args:
            code: Source text of the submission
            stdin: Input payload fed to the program
            language: One of the supported language identifiers
            timeout: Wall-clock seconds for the run step
            memory_limit_mb: Memory ceiling for the program

        Returns:
            ExecutionResult with stdout/stderr text

        Raises:
            SandboxError subclass describing why the run failed
        """
        raise NotImplementedError("Subclasses must implement execute method")
