"""
Verdict Evaluator.

Classifies one sandbox run against a test case's expected output.
"""

from collections import namedtuple

from judge.executor import ExecutionFailure

PENDING = 'pending'
RUNNING = 'running'
ACCEPTED = 'accepted'
WRONG_ANSWER = 'wrong_answer'
TIME_LIMIT_EXCEEDED = 'time_limit_exceeded'
COMPILATION_ERROR = 'compilation_error'
RUNTIME_ERROR = 'runtime_error'

TERMINAL_STATUSES = frozenset([
    ACCEPTED, WRONG_ANSWER, TIME_LIMIT_EXCEEDED, COMPILATION_ERROR, RUNTIME_ERROR,
])

# Exit code / signal the sandbox uses when it kills a process over budget
TIME_LIMIT_EXIT_CODE = 137
TIME_LIMIT_SIGNAL = 'SIGKILL'


Classification = namedtuple('Classification', ['passed', 'verdict', 'message', 'actual_output'])


def is_terminal(status):
    return status in TERMINAL_STATUSES


def _killed_for_time(result):
    return result.exit_code == TIME_LIMIT_EXIT_CODE or result.signal == TIME_LIMIT_SIGNAL


def classify(result, expected_output):
    """Classify an execution outcome for a single test case.

    Rules, first match wins:
        1. compile stderr       -> compilation_error (ends the submission)
        2. run stderr           -> runtime_error
        3. killed over budget   -> time_limit_exceeded
        4. trimmed stdout equal -> passed, otherwise wrong_answer

    An ExecutionFailure (sandbox unreachable) is a runtime_error carrying
    the failure message.

    Returns:
        Classification. ``verdict`` is None when the case passed.
    """
    if isinstance(result, ExecutionFailure):
        return Classification(False, RUNTIME_ERROR, result.message, '')

    actual = result.stdout.strip()

    if result.compile_stderr:
        return Classification(False, COMPILATION_ERROR, result.compile_stderr, '')

    if result.stderr:
        return Classification(False, RUNTIME_ERROR, result.stderr, actual)

    if _killed_for_time(result):
        return Classification(False, TIME_LIMIT_EXCEEDED, None, actual)

    if actual == (expected_output or '').strip():
        return Classification(True, None, None, actual)
    return Classification(False, WRONG_ANSWER, None, actual)
