"""
Judge Routes.

Submission judging, the code playground, and submission lookup.
"""

from flask import Blueprint, request, jsonify, abort, g, current_app
from models.database import db, Problem, Challenge, Submission
from auth.bearer import require_auth
from judge.executor import ExecutionFailure, LanguageUnsupported
from judge.runner import ConfigurationError, judge_submission, sample_results

judge_bp = Blueprint('judge', __name__)


def get_executor():
    return current_app.extensions['judge_executor']


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _required_string(data, key):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def _check_code(code, language):
    if len(code.encode('utf-8')) > current_app.config['MAX_CODE_SIZE']:
        abort(400, description='Code exceeds the maximum allowed size')
    if not get_executor().supports(language):
        abort(400, description=f'Unsupported language: {language}')


@judge_bp.route('/judge', methods=['POST'])
@require_auth
def judge():
    """Judge code against every test case of a problem."""
    data = _json_body()
    problem_id = _required_string(data, 'problemId')
    code = _required_string(data, 'code')
    language = _required_string(data, 'language')
    challenge_id = data.get('challengeId') or None

    if not problem_id or not code or not language:
        abort(400, description='Missing required fields')
    _check_code(code, language)

    problem = db.session.get(Problem, problem_id)
    if problem is None:
        abort(404, description='Problem not found')

    if challenge_id is not None:
        if not isinstance(challenge_id, str) or db.session.get(Challenge, challenge_id) is None:
            abort(404, description='Challenge not found')

    test_cases = problem.test_cases.all()

    try:
        result = judge_submission(
            executor=get_executor(),
            problem=problem,
            test_cases=test_cases,
            user_id=g.user.id,
            code=code,
            language=language,
            challenge_id=challenge_id,
        )
    except ConfigurationError as e:
        current_app.logger.error(str(e))
        abort(409, description='Problem has no test cases')

    return jsonify(result)


@judge_bp.route('/run', methods=['POST'])
@require_auth
def run_code():
    """Run code once with optional stdin, without judging or saving it."""
    data = _json_body()
    code = _required_string(data, 'code')
    language = _required_string(data, 'language')
    stdin = data.get('stdin') or ''

    if not code or not language:
        abort(400, description='Missing required fields')
    if not isinstance(stdin, str):
        abort(400, description='stdin must be a string')
    _check_code(code, language)

    try:
        result = get_executor().execute(
            code, language, stdin,
            current_app.config['PLAYGROUND_TIME_LIMIT_MS'],
            current_app.config['PLAYGROUND_MEMORY_LIMIT_MB'],
        )
    except LanguageUnsupported as e:
        abort(400, description=str(e))

    if isinstance(result, ExecutionFailure):
        return jsonify({'error': result.message}), 502

    return jsonify({
        'stdout': result.stdout,
        'stderr': result.stderr,
        'compile_output': result.compile_stderr,
        'exit_code': result.exit_code,
        'execution_time_ms': result.time_ms,
        'memory_used_mb': result.memory_bytes / 1_000_000,
    })


@judge_bp.route('/submissions/<submission_id>')
@require_auth
def view_submission(submission_id):
    """View one of the caller's own submissions."""
    submission = db.session.get(Submission, submission_id)

    # Only the owner may see a submission
    if submission is None or submission.user_id != g.user.id:
        abort(404, description='Submission not found')

    data = submission.to_dict(include_code=True)
    data['test_results'] = sample_results(submission.results())
    return jsonify(data)
