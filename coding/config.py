"""
Grader configuration.

Settings are read once into an immutable GraderConfig that is handed to the
gateway, the sandbox factory and the case runner.
"""
from dataclasses import dataclass, field

from django.conf import settings


@dataclass(frozen=True)
class GraderConfig:
    sandbox_backend: str = 'local'
    timeout_seconds: float = 5.0
    max_timeout_seconds: float = 5.0
    compile_timeout_seconds: float = 15.0
    memory_limit_mb: int = 256
    output_limit_bytes: int = 64 * 1024
    fault_retries: int = 3
    fault_backoff_seconds: float = 0.25
    max_workers: int = 4
    submission_budget_seconds: float = 0.0
    docker_images: dict = field(default_factory=dict)
    docker_shared_dir: str = None

    @classmethod
    def from_settings(cls):
        return cls(
            sandbox_backend=settings.SANDBOX_BACKEND,
            timeout_seconds=settings.SANDBOX_TIMEOUT_SECONDS,
            max_timeout_seconds=settings.SANDBOX_MAX_TIMEOUT_SECONDS,
            compile_timeout_seconds=settings.SANDBOX_COMPILE_TIMEOUT_SECONDS,
            memory_limit_mb=settings.SANDBOX_MEMORY_LIMIT_MB,
            output_limit_bytes=settings.SANDBOX_OUTPUT_LIMIT_BYTES,
            fault_retries=settings.SANDBOX_FAULT_RETRIES,
            fault_backoff_seconds=settings.SANDBOX_FAULT_BACKOFF_SECONDS,
            max_workers=settings.GRADER_MAX_WORKERS,
            submission_budget_seconds=settings.GRADER_SUBMISSION_BUDGET_SECONDS,
            docker_images=dict(settings.SANDBOX_DOCKER_IMAGES),
            docker_shared_dir=getattr(settings, 'SANDBOX_SHARED_DIR', None),
        )

    def case_timeout(self, requested=None):
        """Per-case wall clock: assignment override if any, never above the configured maximum."""
        timeout = requested if requested else self.timeout_seconds
        return max(0.1, min(float(timeout), self.max_timeout_seconds))

    def case_memory_mb(self, requested=None):
        if requested:
            return max(16, min(int(requested), self.memory_limit_mb * 4))
        return self.memory_limit_mb

    def submission_budget(self, case_count, case_timeout, needs_compile):
        """Wall clock for a whole submission; unstarted cases past it are timed out."""
        if self.submission_budget_seconds and self.submission_budget_seconds > 0:
            return float(self.submission_budget_seconds)
        budget = case_count * case_timeout
        if needs_compile:
            budget += case_count * self.compile_timeout_seconds
        return budget
