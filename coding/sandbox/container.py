"""
Docker sandbox: one disposable container per compile step and per run.

Containers start with networking disabled, capped memory/pids/cpu, all
capabilities dropped and only the per-execution scratch directory mounted.
A run that outlives its timeout is killed; containers are always removed.
Logs are streamed and reading stops at the output limit.
"""
import logging
import os
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass

import docker
from docker.errors import DockerException

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

logger = logging.getLogger(__name__)

CONTAINER_WORKDIR = '/sandbox'

# Tool names inside the official language images
CONTAINER_TOOLS = {
    'python': 'python',
    'node': 'node',
    'javac': 'javac',
    'java': 'java',
    'gcc': 'gcc',
    'gxx': 'g++',
}

POLL_INTERVAL_SECONDS = 0.05


@dataclass
class _ContainerOutcome:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool
    oom_killed: bool
    duration_ms: int


class DockerSandbox(Sandbox):
    """Run submissions inside throwaway containers through the Docker SDK."""

    name = 'docker'

    def __init__(self, images, output_limit_bytes=64 * 1024, compile_timeout=15.0,
                 shared_dir=None, pids_limit=64, nano_cpus=1_000_000_000, client=None):
        self.images = dict(images)
        self.output_limit_bytes = output_limit_bytes
        self.compile_timeout = compile_timeout
        self.shared_dir = shared_dir
        self.pids_limit = pids_limit
        self.nano_cpus = nano_cpus
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self):
        with self._client_lock:
            if self._client is None:
                logger.info("Initializing Docker client")
                try:
                    client = docker.from_env()
                    client.ping()
                except DockerException as e:
                    raise SandboxFault(f"Docker daemon unavailable: {e}")
                logger.info("Connected to Docker using environment variables")
                self._client = client
            return self._client

    def execute(self, code, stdin, language, timeout, memory_limit_mb):
        try:
            profile = get_profile(language)
        except ValueError as e:
            raise SandboxFault(str(e))
        image = self.images.get(profile.name)
        if not image:
            raise SandboxFault(f"No sandbox image configured for {profile.name}")

        try:
            if self.shared_dir:
                os.makedirs(self.shared_dir, exist_ok=True)
            workdir = tempfile.mkdtemp(prefix='grade_', dir=self.shared_dir)
            with open(os.path.join(workdir, profile.source_filename(code)), 'w', encoding='utf-8') as f:
                f.write(code)
            with open(os.path.join(workdir, '.stdin'), 'w', encoding='utf-8') as f:
                f.write(stdin or '')
            # container user differs from ours; scratch dir must be writable for compiler output
            os.chmod(workdir, 0o777)
        except OSError as e:
            raise SandboxFault(f"Could not provision sandbox directory: {e}")

        try:
            if profile.needs_compile:
                argv = profile.compile_argv(code, CONTAINER_TOOLS, memory_limit_mb)
                outcome = self._run_container(image, argv, workdir, self.compile_timeout,
                                              max(memory_limit_mb, 512))
                if outcome.timed_out:
                    raise CompilationFailed(
                        f"Compilation timed out after {self.compile_timeout:g}s",
                        stderr=outcome.stderr, duration_ms=outcome.duration_ms,
                    )
                if outcome.exit_code != 0:
                    raise CompilationFailed(
                        f"Compilation error: {outcome.stderr.strip()[:500] or outcome.stdout.strip()[:500]}",
                        stderr=outcome.stderr, duration_ms=outcome.duration_ms,
                    )

            argv = profile.run_argv(code, CONTAINER_TOOLS, memory_limit_mb)
            outcome = self._run_container(image, argv, workdir, timeout, memory_limit_mb)
            return self._classify(outcome, timeout)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _run_container(self, image, argv, workdir, timeout, memory_limit_mb):
        command = ['sh', '-c', f'exec "$@" < {CONTAINER_WORKDIR}/.stdin', 'sh', *argv]
        logger.debug("Docker run %s: %s", image, ' '.join(argv))
        start = time.perf_counter()
        try:
            container = self.client.containers.run(
                image,
                command,
                detach=True,
                working_dir=CONTAINER_WORKDIR,
                network_disabled=True,
                mem_limit=f'{memory_limit_mb}m',
                memswap_limit=f'{memory_limit_mb}m',
                pids_limit=self.pids_limit,
                nano_cpus=self.nano_cpus,
                cap_drop=['ALL'],
                security_opt=['no-new-privileges'],
                volumes={workdir: {'bind': CONTAINER_WORKDIR, 'mode': 'rw'}},
                environment={'HOME': CONTAINER_WORKDIR, 'PYTHONDONTWRITEBYTECODE': '1'},
            )
        except DockerException as e:
            raise SandboxFault(f"Could not start container from {image}: {e}")

        try:
            timed_out = not self._poll_wait_or_kill(container, timeout)
            duration_ms = int((time.perf_counter() - start) * 1000)
            container.reload()
            state = container.attrs.get('State', {})
            stdout = self._read_logs(container, stdout=True, stderr=False)
            stderr = self._read_logs(container, stdout=False, stderr=True)
        except DockerException as e:
            raise SandboxFault(f"Lost track of sandbox container: {e}")
        finally:
            try:
                container.remove(force=True)
            except DockerException as e:
                logger.warning("Failed to remove container %s: %s", getattr(container, 'id', '?'), e)

        return _ContainerOutcome(
            exit_code=int(state.get('ExitCode') or 0),
            stdout=truncate(stdout, self.output_limit_bytes),
            stderr=truncate(stderr, self.output_limit_bytes),
            timed_out=timed_out,
            oom_killed=bool(state.get('OOMKilled')),
            duration_ms=duration_ms,
        )

    def _read_logs(self, container, stdout, stderr):
        """Stream one log channel, reading at most output_limit_bytes + 1 bytes."""
        limit = self.output_limit_bytes + 1
        chunks = []
        size = 0
        stream = container.logs(stdout=stdout, stderr=stderr, stream=True, follow=False)
        try:
            for chunk in stream:
                chunks.append(chunk)
                size += len(chunk)
                if size >= limit:
                    break
        finally:
            close = getattr(stream, 'close', None)
            if close is not None:
                close()
        return b''.join(chunks)[:limit].decode('utf-8', 'replace')

    def _poll_wait_or_kill(self, container, timeout):
        """True if the container exited by itself within `timeout` seconds."""
        deadline = time.monotonic() + timeout
        while True:
            container.reload()
            status = container.attrs.get('State', {}).get('Status')
            if status in ('exited', 'dead'):
                return True
            if time.monotonic() >= deadline:
                try:
                    container.kill()
                except DockerException as e:
                    logger.warning("Failed to kill timed out container: %s", e)
                return False
            time.sleep(POLL_INTERVAL_SECONDS)

    def _classify(self, outcome, timeout):
        if outcome.timed_out:
            raise ExecutionTimedOut(
                f"Execution exceeded the {timeout:g}s time limit",
                stderr=outcome.stderr, duration_ms=outcome.duration_ms,
            )
        if outcome.oom_killed or (outcome.exit_code != 0 and looks_like_memory_failure(outcome.stderr)):
            raise MemoryLimitExceeded(
                "Memory limit exceeded",
                stderr=outcome.stderr, duration_ms=outcome.duration_ms,
            )
        if outcome.exit_code != 0:
            raise RuntimeFailure(
                f"Process exited with code {outcome.exit_code}",
                stderr=outcome.stderr, duration_ms=outcome.duration_ms,
                exit_code=outcome.exit_code, stdout=outcome.stdout,
            )
        return ExecutionResult(
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            exit_code=0,
            duration_ms=outcome.duration_ms,
        )
