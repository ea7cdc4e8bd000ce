"""
Submission Orchestrator.

Drives one submission through pending → running → verdict: runs the
test cases one at a time in order, stops at the first failure, writes
the final record and folds it into the user's problem statistics.
"""

import logging
from datetime import datetime, timedelta, timezone

from models.database import Submission
from judge.executor import ExecutionResult
from judge import store
from judge.stats import upsert_user_problem_stats
from judge.verdicts import (ACCEPTED, COMPILATION_ERROR, PENDING, RUNNING,
                            RUNTIME_ERROR, classify)

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1_000_000


class ConfigurationError(Exception):
    """The problem cannot be judged as configured (e.g. no test cases)."""


class CaseResult:
    """Result of running a single test case."""
    def __init__(self, test_case_id, is_sample, input_data, expected_output,
                 actual_output, passed, time_ms, memory_bytes):
        self.test_case_id = test_case_id
        self.is_sample = is_sample
        self.input_data = input_data
        self.expected_output = expected_output
        self.actual_output = actual_output
        self.passed = passed
        self.time_ms = time_ms
        self.memory_bytes = memory_bytes

    def to_dict(self):
        return {
            'test_case_id': self.test_case_id,
            'is_sample': self.is_sample,
            'input': self.input_data,
            'expected_output': self.expected_output,
            'actual_output': self.actual_output,
            'passed': self.passed,
            'execution_time_ms': self.time_ms,
            'memory_used_mb': self.memory_bytes / BYTES_PER_MB,
        }


def sample_results(results):
    """Strip a list of stored case results down to what a submitter may see."""
    return [
        {key: r[key] for key in ('input', 'expected_output', 'actual_output', 'passed',
                                 'execution_time_ms', 'memory_used_mb')}
        for r in results
        if r.get('is_sample')
    ]


def _aggregate(case_results):
    """Mean time and peak memory (MB) over the cases that actually ran."""
    if not case_results:
        return 0.0, 0.0
    mean_time = sum(r.time_ms for r in case_results) / len(case_results)
    peak_memory = max(r.memory_bytes for r in case_results) / BYTES_PER_MB
    return mean_time, peak_memory


def run_test_cases(executor, code, language, test_cases, time_limit_ms, memory_limit_mb):
    """Execute test cases in ascending order_index until the first failure.

    Returns:
        tuple: (status, passed_count, error_message, case_results)
    """
    status = ACCEPTED
    error_message = None
    passed = 0
    case_results = []

    for tc in sorted(test_cases, key=lambda t: t.order_index):
        try:
            result = executor.execute(code, language, tc.input_data, time_limit_ms, memory_limit_mb)
            outcome = classify(result, tc.expected_output)
        except Exception as e:
            logger.exception('Test case %s raised during judging', tc.id)
            status = RUNTIME_ERROR
            error_message = str(e) or type(e).__name__
            break

        if isinstance(result, ExecutionResult) and outcome.verdict != COMPILATION_ERROR:
            case_results.append(CaseResult(
                test_case_id=tc.id,
                is_sample=bool(tc.is_sample),
                input_data=tc.input_data,
                expected_output=tc.expected_output,
                actual_output=outcome.actual_output,
                passed=outcome.passed,
                time_ms=result.time_ms,
                memory_bytes=result.memory_bytes,
            ))

        if outcome.passed:
            passed += 1
            continue

        status = outcome.verdict
        error_message = outcome.message
        break

    return status, passed, error_message, case_results


def judge_submission(executor, problem, test_cases, user_id, code, language,
                     challenge_id=None):
    """Judge a complete submission against a problem's test cases.

    Args:
        executor: Execution client (see judge.executor.PistonClient)
        problem: Problem model object
        test_cases: List of TestCase model objects
        user_id: Id of the submitting user
        code: Source code string, stored verbatim
        language: Language identifier
        challenge_id: Optional challenge the submission belongs to

    Returns:
        dict: the response body for the submitter, with per-case detail
        for sample cases only.

    Raises:
        ConfigurationError: the problem has no test cases. Nothing is written.
        SQLAlchemyError: persistence failed; judging is abandoned.
    """
    if not test_cases:
        raise ConfigurationError(f'Problem {problem.id} has no test cases')

    total = len(test_cases)
    submission_id = store.create_submission(
        problem_id=problem.id,
        user_id=user_id,
        code=code,
        language=language,
        total=total,
        challenge_id=challenge_id,
    )
    store.mark_running(submission_id)

    status, passed, error_message, case_results = run_test_cases(
        executor, code, language, test_cases,
        problem.time_limit_ms, problem.memory_limit_mb,
    )

    execution_time_ms, memory_used_mb = _aggregate(case_results)
    results = [r.to_dict() for r in case_results]

    store.update_submission(
        submission_id,
        status=status,
        test_cases_passed=passed,
        test_cases_total=total,
        execution_time_ms=execution_time_ms,
        memory_used_mb=memory_used_mb,
        error_message=error_message,
        results=results,
    )
    upsert_user_problem_stats(
        user_id=user_id,
        problem_id=problem.id,
        verdict=status,
        execution_time_ms=execution_time_ms,
        memory_used_mb=memory_used_mb,
        problem_points=problem.points,
    )
    logger.info('Submission %s for problem %s: %s (%d/%d)',
                submission_id, problem.id, status, passed, total)

    return {
        'submissionId': submission_id,
        'submission_id': submission_id,
        'status': status,
        'test_cases_passed': passed,
        'test_cases_total': total,
        'execution_time_ms': execution_time_ms,
        'memory_used_mb': memory_used_mb,
        'error_message': error_message,
        'test_results': sample_results(results),
    }


def sweep_stale_submissions(max_age_minutes, now=None):
    """Close out submissions stuck in pending/running after a crashed run.

    Returns:
        list of swept submission ids
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=max_age_minutes)

    stale = Submission.query.filter(
        Submission.status.in_([PENDING, RUNNING]),
        Submission.created_at < cutoff,
    ).order_by(Submission.created_at).all()

    swept = []
    for submission in stale:
        problem = submission.problem
        previous = submission.status
        store.update_submission(
            submission.id,
            status=RUNTIME_ERROR,
            error_message='Judging interrupted',
        )
        upsert_user_problem_stats(
            user_id=submission.user_id,
            problem_id=submission.problem_id,
            verdict=RUNTIME_ERROR,
            execution_time_ms=None,
            memory_used_mb=None,
            problem_points=problem.points if problem else 0,
        )
        logger.warning('Swept stale submission %s (was %s)', submission.id, previous)
        swept.append(submission.id)

    return swept
