"""
Execution sandboxes for untrusted submission code.
"""
from .base import (
    CompilationFailed,
    ErrorKind,
    ExecutionResult,
    ExecutionTimedOut,
    MemoryLimitExceeded,
    RuntimeFailure,
    Sandbox,
    SandboxError,
    SandboxFault,
)
from .languages import LANGUAGE_CHOICES, SUPPORTED_LANGUAGES, get_profile


def build_sandbox(config):
    """Create the backend named by config.sandbox_backend."""
    if config.sandbox_backend == 'docker':
        from .container import DockerSandbox
        return DockerSandbox(
            images=config.docker_images,
            output_limit_bytes=config.output_limit_bytes,
            compile_timeout=config.compile_timeout_seconds,
            shared_dir=config.docker_shared_dir,
        )
    if config.sandbox_backend == 'local':
        from .local import LocalSandbox
        return LocalSandbox(
            output_limit_bytes=config.output_limit_bytes,
            compile_timeout=config.compile_timeout_seconds,
        )
    raise ValueError(f"Unknown sandbox backend: {config.sandbox_backend}")


__all__ = [
    'CompilationFailed',
    'ErrorKind',
    'ExecutionResult',
    'ExecutionTimedOut',
    'MemoryLimitExceeded',
    'RuntimeFailure',
    'Sandbox',
    'SandboxError',
    'SandboxFault',
    'LANGUAGE_CHOICES',
    'SUPPORTED_LANGUAGES',
    'get_profile',
    'build_sandbox',
]
