"""
Local subprocess sandbox.

Every execution gets a fresh temporary directory, a scrubbed environment,
its own session/process group and rlimits (address space, CPU, output file
size, no core dumps). The whole process group is killed once the program
exits or overruns its wall-clock limit, so nothing it spawned survives.
Stdin/stdout/stderr go through files inside the scratch directory so output
size is bounded by RLIMIT_FSIZE rather than by host memory.

This backend is meant for development and tests; it does not cut network
access. Production uses the docker backend.
"""
import logging
import math
import os
import shutil
import signal
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass

from .base import (
    CompilationFailed,
    ExecutionResult,
    ExecutionTimedOut,
    MemoryLimitExceeded,
    RuntimeFailure,
    Sandbox,
    SandboxFault,
    looks_like_memory_failure,
    truncate,
)
from .languages import get_profile
from . import _launcher

logger = logging.getLogger(__name__)

LAUNCHER_PATH = os.path.abspath(_launcher.__file__)

# Executable names searched on PATH for each template placeholder
TOOL_EXECUTABLES = {
    'node': ('node', 'nodejs'),
    'javac': ('javac',),
    'java': ('java',),
    'gcc': ('gcc', 'cc'),
    'gxx': ('g++', 'c++'),
}


def discover_tools():
    """Resolve toolchain binaries available on this host."""
    tools = {'python': sys.executable}
    for placeholder, candidates in TOOL_EXECUTABLES.items():
        for candidate in candidates:
            path = shutil.which(candidate)
            if path:
                tools[placeholder] = path
                break
    return tools


@dataclass
class _Outcome:
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool
    duration_ms: int


class LocalSandbox(Sandbox):
    """Run submissions as child processes of the grading host."""

    name = 'local'

    def __init__(self, output_limit_bytes=64 * 1024, compile_timeout=15.0, tools=None, scratch_root=None):
        self.output_limit_bytes = output_limit_bytes
        self.compile_timeout = compile_timeout
        self.tools = tools if tools is not None else discover_tools()
        self.scratch_root = scratch_root

    def execute(self, code, stdin, language, timeout, memory_limit_mb):
        try:
            profile = get_profile(language)
        except ValueError as e:
            raise SandboxFault(str(e))

        missing = [tool for tool in profile.tools if not self.tools.get(tool)]
        if missing:
            raise SandboxFault(f"{profile.name} toolchain not available on this host: {', '.join(missing)}")

        try:
            workdir = tempfile.mkdtemp(prefix='grade_', dir=self.scratch_root)
        except OSError as e:
            raise SandboxFault(f"Could not provision sandbox directory: {e}")
        logger.debug("Provisioned sandbox directory %s for %s", workdir, profile.name)

        try:
            try:
                with open(os.path.join(workdir, profile.source_filename(code)), 'w', encoding='utf-8') as f:
                    f.write(code)
            except OSError as e:
                raise SandboxFault(f"Could not write submission source: {e}")

            if profile.needs_compile:
                self._compile(profile, code, workdir, memory_limit_mb)

            argv = profile.run_argv(code, self.tools, memory_limit_mb)
            address_space = memory_limit_mb * 1024 * 1024 if profile.limit_address_space else 0
            outcome = self._spawn(
                argv,
                workdir,
                stdin or '',
                timeout,
                address_space=address_space,
                cpu_seconds=math.ceil(timeout) + 1,
            )
            return self._classify(outcome, timeout)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _compile(self, profile, code, workdir, memory_limit_mb):
        argv = profile.compile_argv(code, self.tools, memory_limit_mb)
        logger.debug("Compiling: %s", ' '.join(argv))
        outcome = self._spawn(
            argv,
            workdir,
            '',
            self.compile_timeout,
            address_space=0,
            cpu_seconds=math.ceil(self.compile_timeout) + 1,
        )
        if outcome.timed_out:
            raise CompilationFailed(
                f"Compilation timed out after {self.compile_timeout:g}s",
                stderr=outcome.stderr,
                duration_ms=outcome.duration_ms,
            )
        if outcome.returncode != 0:
            self._raise_if_launch_failed(outcome)
            raise CompilationFailed(
                f"Compilation error: {outcome.stderr.strip()[:500] or outcome.stdout.strip()[:500]}",
                stderr=outcome.stderr,
                duration_ms=outcome.duration_ms,
            )

    def _spawn(self, argv, workdir, stdin_text, timeout, address_space, cpu_seconds):
        stdin_path = os.path.join(workdir, '.stdin')
        stdout_path = os.path.join(workdir, '.stdout')
        stderr_path = os.path.join(workdir, '.stderr')
        with open(stdin_path, 'w', encoding='utf-8') as f:
            f.write(stdin_text)

        file_size = max(self.output_limit_bytes * 4, 1024 * 1024)
        command = [
            sys.executable, '-I', LAUNCHER_PATH,
            str(address_space), str(cpu_seconds), str(file_size),
            '--', *argv,
        ]

        timed_out = False
        start = time.perf_counter()
        try:
            with open(stdin_path, 'rb') as fin, open(stdout_path, 'wb') as fout, open(stderr_path, 'wb') as ferr:
                proc = subprocess.Popen(
                    command,
                    cwd=workdir,
                    stdin=fin,
                    stdout=fout,
                    stderr=ferr,
                    env=self._environment(workdir),
                    start_new_session=True,
                )
                try:
                    proc.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    timed_out = True
                finally:
                    # background children must not outlive the case
                    self._kill_group(proc)
        except OSError as e:
            raise SandboxFault(f"Could not start sandboxed process: {e}")
        duration_ms = int((time.perf_counter() - start) * 1000)

        return _Outcome(
            returncode=proc.returncode,
            stdout=self._read_capped(stdout_path),
            stderr=self._read_capped(stderr_path),
            timed_out=timed_out,
            duration_ms=duration_ms,
        )

    def _kill_group(self, proc):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.warning("killpg failed for pid %s: %s", proc.pid, e)
            proc.kill()
        proc.wait()

    def _environment(self, workdir):
        tool_dirs = []
        for path in self.tools.values():
            directory = os.path.dirname(path)
            if directory and directory not in tool_dirs:
                tool_dirs.append(directory)
        return {
            'PATH': os.pathsep.join(tool_dirs + [os.defpath]),
            'HOME': workdir,
            'TMPDIR': workdir,
            'LANG': 'C.UTF-8',
            'PYTHONIOENCODING': 'utf-8',
            'PYTHONDONTWRITEBYTECODE': '1',
        }

    def _read_capped(self, path):
        try:
            with open(path, 'rb') as f:
                data = f.read(self.output_limit_bytes + 1)
        except OSError:
            return ''
        return truncate(data.decode('utf-8', errors='replace'), self.output_limit_bytes)

    def _raise_if_launch_failed(self, outcome):
        if outcome.returncode == _launcher.LAUNCH_FAILURE_EXIT and _launcher.LAUNCH_FAILURE_MARKER in outcome.stderr:
            raise SandboxFault(outcome.stderr.strip(), stderr=outcome.stderr, duration_ms=outcome.duration_ms)

    def _classify(self, outcome, timeout):
        if outcome.timed_out:
            raise ExecutionTimedOut(
                f"Execution exceeded the {timeout:g}s time limit",
                stderr=outcome.stderr,
                duration_ms=outcome.duration_ms,
            )

        code = outcome.returncode
        if code == 0:
            return ExecutionResult(
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                exit_code=0,
                duration_ms=outcome.duration_ms,
            )

        self._raise_if_launch_failed(outcome)

        if code < 0:
            signum = -code
            if signum == signal.SIGXCPU:
                raise ExecutionTimedOut(
                    "CPU time limit exceeded",
                    stderr=outcome.stderr,
                    duration_ms=outcome.duration_ms,
                )
            if signum == signal.SIGXFSZ:
                raise RuntimeFailure(
                    "Output limit exceeded",
                    stderr=outcome.stderr,
                    duration_ms=outcome.duration_ms,
                    exit_code=code,
                    stdout=outcome.stdout,
                )
            if signum == signal.SIGKILL or looks_like_memory_failure(outcome.stderr):
                raise MemoryLimitExceeded(
                    "Memory limit exceeded",
                    stderr=outcome.stderr,
                    duration_ms=outcome.duration_ms,
                )
            try:
                signame = signal.Signals(signum).name
            except ValueError:
                signame = str(signum)
            raise RuntimeFailure(
                f"Process terminated by signal {signame}",
                stderr=outcome.stderr,
                duration_ms=outcome.duration_ms,
                exit_code=code,
                stdout=outcome.stdout,
            )

        if looks_like_memory_failure(outcome.stderr):
            raise MemoryLimitExceeded(
                "Memory limit exceeded",
                stderr=outcome.stderr,
                duration_ms=outcome.duration_ms,
            )
        raise RuntimeFailure(
            f"Process exited with code {code}",
            stderr=outcome.stderr,
            duration_ms=outcome.duration_ms,
            exit_code=code,
            stdout=outcome.stdout,
        )
