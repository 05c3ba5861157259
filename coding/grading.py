"""
Grading: run a submission against every test case and reduce the per-case
results into a score.

Every test case yields exactly one result row. Sandbox failures (compile
errors, crashes, timeouts, memory, infrastructure faults) become failed rows
carrying the error kind; they never abort the other cases.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from coding.comparator import TRAILING, outputs_match
from coding.sandbox import ErrorKind, SandboxError, SandboxFault, get_profile

logger = logging.getLogger(__name__)

STDERR_PREVIEW_CHARS = 2000


@dataclass(frozen=True)
class GradingCase:
    """Test case as the grader sees it (detached from the ORM)."""
    id: str
    input_data: str
    expected_output: str
    is_hidden: bool = False
    points: int = 1


@dataclass
class GradeSummary:
    passed_count: int
    total_count: int
    awarded_points: int
    total_points: int
    auto_grade: int
    results: list = field(default_factory=list)


def compute_auto_grade(awarded_points, total_points):
    """Percentage of points earned, rounded half up (62.5 -> 63)."""
    if not total_points:
        return 0
    percent = Decimal(100 * awarded_points) / Decimal(total_points)
    return int(percent.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def aggregate(results):
    """Reduce TestResult rows (hidden ones included) into a GradeSummary."""
    passed_count = sum(1 for r in results if r['passed'])
    awarded = sum(r['points'] for r in results)
    total = sum(r['maxPoints'] for r in results)
    return GradeSummary(
        passed_count=passed_count,
        total_count=len(results),
        awarded_points=awarded,
        total_points=total,
        auto_grade=compute_auto_grade(awarded, total),
        results=list(results),
    )


def build_result(case, actual_output='', passed=False, execution_ms=0,
                 error_kind=None, error=None, stderr=''):
    return {
        'testCaseId': str(case.id),
        'input': case.input_data,
        'expectedOutput': case.expected_output,
        'actualOutput': actual_output or '',
        'passed': passed,
        'points': case.points if passed else 0,
        'maxPoints': case.points,
        'executionTime': execution_ms,
        'isHidden': case.is_hidden,
        'errorKind': error_kind,
        'error': error,
        'stderr': (stderr or '')[:STDERR_PREVIEW_CHARS],
    }


def result_from_error(case, exc):
    return build_result(
        case,
        actual_output=getattr(exc, 'stdout', ''),
        execution_ms=exc.duration_ms,
        error_kind=exc.kind,
        error=exc.message,
        stderr=exc.stderr,
    )


def timed_out_unstarted(case):
    return build_result(
        case,
        error_kind=ErrorKind.TIMEOUT,
        error='Submission time budget exhausted before this test case started',
    )


class CaseRunner:
    """
    Run one test case through the sandbox and compare its output.

    SandboxFault is retried with exponential backoff; every other sandbox
    error is final for the case.
    """

    def __init__(self, sandbox, config, sleep=time.sleep):
        self.sandbox = sandbox
        self.config = config
        self.sleep = sleep

    def run(self, case, code, language, timeout, memory_limit_mb,
            comparison_mode=TRAILING, deadline=None, clock=time.monotonic):
        attempts = max(1, self.config.fault_retries)
        for attempt in range(attempts):
            try:
                execution = self.sandbox.execute(code, case.input_data, language, timeout, memory_limit_mb)
            except SandboxFault as exc:
                last_fault = exc
                if attempt + 1 >= attempts:
                    break
                delay = self.config.fault_backoff_seconds * (2 ** attempt)
                if deadline is not None and clock() + delay >= deadline:
                    break
                logger.warning(
                    "Sandbox fault on case %s (attempt %d/%d), retrying in %.2fs: %s",
                    case.id, attempt + 1, attempts, delay, exc.message,
                )
                if delay > 0:
                    self.sleep(delay)
                continue
            except SandboxError as exc:
                logger.debug("Case %s failed with %s: %s", case.id, exc.kind, exc.message)
                return result_from_error(case, exc)

            passed = outputs_match(execution.stdout, case.expected_output, comparison_mode)
            return build_result(
                case,
                actual_output=execution.stdout,
                passed=passed,
                execution_ms=execution.duration_ms,
                stderr=execution.stderr,
            )

        logger.error("Sandbox fault on case %s after %d attempt(s): %s", case.id, attempt + 1, last_fault.message)
        return result_from_error(case, last_fault)


def grade_cases(cases, code, language, sandbox, config, timeout=None, memory_limit_mb=None,
                comparison_mode=TRAILING, clock=time.monotonic, sleep=time.sleep):
    """
    Execute `code` against every case with bounded concurrency and return a GradeSummary.

    Results come back in the order of `cases`. Cases that have not started
    when the submission budget runs out are recorded as timeouts without
    being executed; cases already running get at most the remaining budget.
    """
    cases = list(cases)
    case_timeout = config.case_timeout(timeout)
    memory_mb = config.case_memory_mb(memory_limit_mb)
    needs_compile = get_profile(language).needs_compile
    budget = config.submission_budget(len(cases), case_timeout, needs_compile)
    deadline = clock() + budget
    runner = CaseRunner(sandbox, config, sleep=sleep)

    def run_one(case):
        remaining = deadline - clock()
        if remaining <= 0:
            logger.info("Budget exhausted, case %s recorded as timeout", case.id)
            return timed_out_unstarted(case)
        try:
            return runner.run(
                case, code, language,
                timeout=min(case_timeout, remaining),
                memory_limit_mb=memory_mb,
                comparison_mode=comparison_mode,
                deadline=deadline,
                clock=clock,
            )
        except Exception as exc:
            logger.exception("Unexpected error grading case %s", case.id)
            return build_result(case, error_kind=ErrorKind.SANDBOX_FAULT, error=f"Unexpected grader error: {exc}")

    start = time.perf_counter()
    workers = max(1, min(config.max_workers, len(cases) or 1))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='grader') as pool:
        results = list(pool.map(run_one, cases))

    summary = aggregate(results)
    logger.info(
        "Graded %d case(s) in %s: %d passed, %d/%d points, auto grade %d (%.0f ms)",
        summary.total_count, language, summary.passed_count,
        summary.awarded_points, summary.total_points, summary.auto_grade,
        (time.perf_counter() - start) * 1000,
    )
    return summary
