"""
Grading core: per-case results, scoring, concurrency, budget and fault retries.
Runs against a scripted sandbox; no real processes are started.
"""
import threading
import time
from unittest import mock

from django.test import SimpleTestCase

from coding.config import GraderConfig
from coding.grading import GradingCase, aggregate, build_result, compute_auto_grade, grade_cases
from coding.locks import KeyedLocks, advisory_key, advisory_lock
from coding.sandbox import (
    CompilationFailed,
    ErrorKind,
    ExecutionTimedOut,
    MemoryLimitExceeded,
    RuntimeFailure,
    SandboxFault,
)
from tests.fakes import ScriptedSandbox


def make_cases(*specs):
    """specs: (stdin, expected, points[, hidden])"""
    cases = []
    for i, spec in enumerate(specs):
        stdin, expected, points = spec[:3]
        hidden = spec[3] if len(spec) > 3 else False
        cases.append(GradingCase(
            id=f'case-{i}', input_data=stdin, expected_output=expected, is_hidden=hidden, points=points,
        ))
    return cases


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            return self.now

    def advance(self, seconds):
        with self._lock:
            self.now += seconds


class AutoGradeTests(SimpleTestCase):
    def test_half_rounds_up(self):
        self.assertEqual(compute_auto_grade(5, 8), 63)
        self.assertEqual(compute_auto_grade(1, 8), 13)
        self.assertEqual(compute_auto_grade(1, 200), 1)

    def test_thirds(self):
        self.assertEqual(compute_auto_grade(1, 3), 33)
        self.assertEqual(compute_auto_grade(2, 3), 67)

    def test_bounds(self):
        self.assertEqual(compute_auto_grade(0, 4), 0)
        self.assertEqual(compute_auto_grade(4, 4), 100)
        self.assertEqual(compute_auto_grade(0, 0), 0)

    def test_aggregate_counts_hidden_cases(self):
        cases = make_cases(("a", "1", 1), ("b", "2", 3, True))
        results = [build_result(cases[0], "1", passed=False), build_result(cases[1], "2", passed=True)]
        summary = aggregate(results)
        self.assertEqual(summary.passed_count, 1)
        self.assertEqual(summary.total_count, 2)
        self.assertEqual(summary.awarded_points, 3)
        self.assertEqual(summary.total_points, 4)
        self.assertEqual(summary.auto_grade, 75)


class GradeCasesTests(SimpleTestCase):
    def setUp(self):
        self.config = GraderConfig(fault_backoff_seconds=0.0, max_workers=4)

    def test_weighted_score(self):
        """Points [1, 1, 2]; first and third pass -> 3/4 -> 75."""
        cases = make_cases(("1", "one", 1), ("2", "two", 1), ("3", "three", 2))
        sandbox = ScriptedSandbox({"1": "one\n", "2": "TWO\n", "3": "three"})
        summary = grade_cases(cases, "print()", "python", sandbox, self.config)

        self.assertEqual(summary.passed_count, 2)
        self.assertEqual(summary.total_count, 3)
        self.assertEqual(summary.auto_grade, 75)
        self.assertEqual([r['passed'] for r in summary.results], [True, False, True])
        self.assertEqual([r['points'] for r in summary.results], [1, 0, 2])
        self.assertEqual([r['maxPoints'] for r in summary.results], [1, 1, 2])

    def test_result_shape(self):
        cases = make_cases(("in", "out", 2, True))
        sandbox = ScriptedSandbox({"in": "out\n"})
        result = grade_cases(cases, "code", "python", sandbox, self.config).results[0]
        self.assertEqual(result, {
            'testCaseId': 'case-0',
            'input': 'in',
            'expectedOutput': 'out',
            'actualOutput': 'out\n',
            'passed': True,
            'points': 2,
            'maxPoints': 2,
            'executionTime': 1,
            'isHidden': True,
            'errorKind': None,
            'error': None,
            'stderr': '',
        })

    def test_timeout_case_fails_and_siblings_still_scored(self):
        cases = make_cases(("1", "a", 1), ("2", "b", 1), ("3", "c", 1))
        sandbox = ScriptedSandbox({
            "1": "a",
            "2": ExecutionTimedOut("Execution exceeded the 5s time limit", duration_ms=5000),
            "3": "c",
        })
        summary = grade_cases(cases, "code", "python", sandbox, self.config)

        self.assertEqual(summary.total_count, 3)
        self.assertEqual(summary.passed_count, 2)
        self.assertEqual(summary.auto_grade, 67)
        timed_out = summary.results[1]
        self.assertFalse(timed_out['passed'])
        self.assertEqual(timed_out['points'], 0)
        self.assertEqual(timed_out['errorKind'], ErrorKind.TIMEOUT)
        self.assertIn("time limit", timed_out['error'])

    def test_every_error_kind_becomes_a_failed_row(self):
        cases = make_cases(("rt", "x", 1), ("mem", "x", 1), ("ok", "x", 1))
        sandbox = ScriptedSandbox({
            "rt": RuntimeFailure("Process exited with code 1", stderr="ZeroDivisionError", exit_code=1, stdout="partial"),
            "mem": MemoryLimitExceeded("Memory limit exceeded", stderr="MemoryError"),
            "ok": "x",
        })
        results = grade_cases(cases, "code", "python", sandbox, self.config).results

        self.assertEqual(results[0]['errorKind'], ErrorKind.RUNTIME_ERROR)
        self.assertEqual(results[0]['actualOutput'], "partial")
        self.assertEqual(results[0]['stderr'], "ZeroDivisionError")
        self.assertEqual(results[1]['errorKind'], ErrorKind.MEMORY_EXCEEDED)
        self.assertTrue(results[2]['passed'])

    def test_compile_error_fails_all_cases(self):
        cases = make_cases(("1", "1", 1), ("2", "2", 1))
        sandbox = ScriptedSandbox(default=CompilationFailed("Compilation error: expected ';'"))
        summary = grade_cases(cases, "int main(", "c", sandbox, self.config)

        self.assertEqual(summary.passed_count, 0)
        self.assertEqual(summary.auto_grade, 0)
        self.assertEqual({r['errorKind'] for r in summary.results}, {ErrorKind.COMPILE_ERROR})

    def test_results_follow_case_order_not_completion_order(self):
        def slow(seconds, output):
            def run(*args):
                time.sleep(seconds)
                return output
            return run

        cases = make_cases(("a", "A", 1), ("b", "B", 1), ("c", "C", 1), ("d", "D", 1))
        sandbox = ScriptedSandbox({
            "a": slow(0.2, "A"),
            "b": slow(0.15, "B"),
            "c": slow(0.05, "C"),
            "d": "D",
        })
        summary = grade_cases(cases, "code", "python", sandbox, self.config)
        self.assertEqual([r['testCaseId'] for r in summary.results], ['case-0', 'case-1', 'case-2', 'case-3'])
        self.assertEqual(summary.passed_count, 4)

    def test_concurrency_is_bounded_by_max_workers(self):
        config = GraderConfig(fault_backoff_seconds=0.0, max_workers=2)
        cases = make_cases(*[(str(i), "", 1) for i in range(6)])
        sandbox = ScriptedSandbox(default="", delay=0.05)
        grade_cases(cases, "code", "python", sandbox, config)
        self.assertEqual(len(sandbox.calls), 6)
        self.assertLessEqual(sandbox.max_active, 2)

    def test_unstarted_cases_time_out_when_budget_is_spent(self):
        clock = FakeClock()
        config = GraderConfig(fault_backoff_seconds=0.0, max_workers=1, submission_budget_seconds=3.0)

        def burn_budget(*args):
            clock.advance(10)
            return "1"

        cases = make_cases(("1", "1", 1), ("2", "2", 1), ("3", "3", 1))
        sandbox = ScriptedSandbox({"1": burn_budget, "2": "2", "3": "3"})
        summary = grade_cases(cases, "code", "python", sandbox, config, clock=clock)

        self.assertEqual(sandbox.stdins(), ["1"])
        self.assertEqual(summary.total_count, 3)
        self.assertTrue(summary.results[0]['passed'])
        for result in summary.results[1:]:
            self.assertFalse(result['passed'])
            self.assertEqual(result['errorKind'], ErrorKind.TIMEOUT)

    def test_running_case_gets_at_most_remaining_budget(self):
        clock = FakeClock()
        config = GraderConfig(
            fault_backoff_seconds=0.0, max_workers=1, submission_budget_seconds=7.0, timeout_seconds=5.0,
        )

        def spend(*args):
            clock.advance(4)
            return "x"

        cases = make_cases(("1", "x", 1), ("2", "x", 1))
        sandbox = ScriptedSandbox({"1": spend, "2": "x"})
        grade_cases(cases, "code", "python", sandbox, config, clock=clock)

        self.assertEqual(sandbox.calls[0]['timeout'], 5.0)
        self.assertAlmostEqual(sandbox.calls[1]['timeout'], 3.0)

    def test_assignment_timeout_is_clamped_to_maximum(self):
        config = GraderConfig(fault_backoff_seconds=0.0, timeout_seconds=2.0, max_timeout_seconds=5.0)
        sandbox = ScriptedSandbox(default="")
        grade_cases(make_cases(("1", "", 1)), "code", "python", sandbox, config, timeout=60)
        self.assertEqual(sandbox.calls[0]['timeout'], 5.0)

    def test_sandbox_fault_is_retried_with_backoff(self):
        config = GraderConfig(fault_retries=3, fault_backoff_seconds=0.25)
        sleeps = []
        sandbox = ScriptedSandbox({
            "1": [SandboxFault("daemon busy"), SandboxFault("daemon busy"), "ok"],
        })
        summary = grade_cases(
            make_cases(("1", "ok", 1)), "code", "python", sandbox, config, sleep=sleeps.append,
        )

        self.assertEqual(len(sandbox.calls), 3)
        self.assertEqual(sleeps, [0.25, 0.5])
        self.assertTrue(summary.results[0]['passed'])

    def test_sandbox_fault_recorded_after_retries_exhausted(self):
        config = GraderConfig(fault_retries=3, fault_backoff_seconds=0.0)
        sandbox = ScriptedSandbox({"1": SandboxFault("python toolchain not available on this host"), "2": "2"})
        summary = grade_cases(make_cases(("1", "1", 1), ("2", "2", 1)), "code", "python", sandbox, config)

        self.assertEqual(sandbox.stdins().count("1"), 3)
        self.assertEqual(summary.results[0]['errorKind'], ErrorKind.SANDBOX_FAULT)
        self.assertIn("toolchain", summary.results[0]['error'])
        self.assertTrue(summary.results[1]['passed'])
        self.assertEqual(summary.auto_grade, 50)

    def test_other_errors_are_not_retried(self):
        sandbox = ScriptedSandbox({"1": RuntimeFailure("Process exited with code 1", exit_code=1)})
        grade_cases(make_cases(("1", "1", 1)), "code", "python", sandbox, self.config)
        self.assertEqual(len(sandbox.calls), 1)

    def test_unexpected_exception_is_contained(self):
        sandbox = ScriptedSandbox({"1": KeyError("boom"), "2": "2"})
        with self.assertLogs('coding.grading', level='ERROR'):
            summary = grade_cases(make_cases(("1", "1", 1), ("2", "2", 1)), "code", "python", sandbox, self.config)
        self.assertEqual(summary.total_count, 2)
        self.assertEqual(summary.results[0]['errorKind'], ErrorKind.SANDBOX_FAULT)
        self.assertTrue(summary.results[1]['passed'])

    def test_stderr_preview_is_truncated(self):
        sandbox = ScriptedSandbox({"1": RuntimeFailure("crash", stderr="e" * 10000, exit_code=1)})
        result = grade_cases(make_cases(("1", "1", 1)), "code", "python", sandbox, self.config).results[0]
        self.assertEqual(len(result['stderr']), 2000)


class KeyedLocksTests(SimpleTestCase):
    def test_same_key_is_serialized(self):
        locks = KeyedLocks()
        inside = []
        overlap = []

        def work():
            with locks.hold("sub-1"):
                inside.append(1)
                if len(inside) > 1:
                    overlap.append(True)
                time.sleep(0.05)
                inside.pop()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(overlap, [])

    def test_entries_are_released(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            with locks.hold("b"):
                self.assertEqual(len(locks), 2)
        self.assertEqual(len(locks), 0)

    def test_reentrant_for_same_thread(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            with locks.hold("a"):
                self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)


class AdvisoryLockTests(SimpleTestCase):
    def fake_connection(self, vendor):
        connection = mock.MagicMock()
        connection.vendor = vendor
        self.statements = []
        cursor = connection.cursor.return_value.__enter__.return_value
        cursor.execute.side_effect = lambda sql, params: self.statements.append((sql, params[0]))
        return connection

    def test_postgresql_lock_is_held_for_the_block(self):
        connection = self.fake_connection('postgresql')
        with mock.patch('coding.locks.connections', {'default': connection}):
            with advisory_lock('sub-1'):
                self.assertEqual(self.statements, [('SELECT pg_advisory_lock(%s)', advisory_key('sub-1'))])
        self.assertEqual(self.statements, [
            ('SELECT pg_advisory_lock(%s)', advisory_key('sub-1')),
            ('SELECT pg_advisory_unlock(%s)', advisory_key('sub-1')),
        ])

    def test_postgresql_lock_is_released_on_error(self):
        connection = self.fake_connection('postgresql')
        with mock.patch('coding.locks.connections', {'default': connection}):
            with self.assertRaises(RuntimeError):
                with advisory_lock('sub-1'):
                    raise RuntimeError("grading crashed")
        self.assertEqual(self.statements[-1][0], 'SELECT pg_advisory_unlock(%s)')

    def test_other_databases_take_no_database_lock(self):
        connection = self.fake_connection('sqlite')
        with mock.patch('coding.locks.connections', {'default': connection}):
            with advisory_lock('sub-1'):
                pass
        connection.cursor.assert_not_called()

    def test_key_is_stable_signed_bigint(self):
        key = advisory_key('0b7f6c1e-3c1a-4d4e-9a55-1a2b3c4d5e6f')
        self.assertEqual(key, advisory_key('0b7f6c1e-3c1a-4d4e-9a55-1a2b3c4d5e6f'))
        self.assertNotEqual(key, advisory_key('sub-2'))
        self.assertTrue(-2 ** 63 <= key < 2 ** 63)
