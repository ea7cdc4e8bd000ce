"""
Problem Routes.

Problem authoring, per-user problem stats, challenge submission lists,
and the points leaderboard.
"""

from flask import Blueprint, request, jsonify, abort, g, current_app
from sqlalchemy import case, func
from models.database import (db, Problem, TestCase, Challenge, Submission,
                             User, UserProblemStats)
from auth.bearer import require_auth, require_author

problem_bp = Blueprint('problems', __name__)

LEADERBOARD_DEFAULT_LIMIT = 50
LEADERBOARD_MAX_LIMIT = 200


def _positive_int(data, key, default):
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        abort(400, description=f'{key} must be a positive integer')
    return value


def _non_negative_int(data, key, default):
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        abort(400, description=f'{key} must be a non-negative integer')
    return value


def _parse_test_cases(raw):
    if not isinstance(raw, list) or not raw:
        abort(400, description='A problem needs at least one test case')

    parsed = []
    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            abort(400, description=f'Test case #{position + 1} is malformed')
        input_data = item.get('input', '')
        expected = item.get('expected_output')
        if not isinstance(input_data, str) or not isinstance(expected, str):
            abort(400, description=f'Test case #{position + 1} needs input and expected_output strings')
        order_index = item.get('order_index', position)
        if isinstance(order_index, bool) or not isinstance(order_index, int):
            abort(400, description=f'Test case #{position + 1} has an invalid order_index')
        parsed.append({
            'input_data': input_data,
            'expected_output': expected,
            'is_sample': bool(item.get('is_sample', False)),
            'order_index': order_index,
        })
    return parsed


@problem_bp.route('/problems', methods=['POST'])
@require_author
def create_problem():
    """Create a problem together with its ordered test cases."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='Expected a JSON object')

    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        abort(400, description='Missing required fields')

    test_cases = _parse_test_cases(data.get('test_cases'))

    problem = Problem(
        title=title.strip(),
        description=str(data.get('description', '')).strip(),
        time_limit_ms=_positive_int(data, 'time_limit_ms', 2000),
        memory_limit_mb=_positive_int(data, 'memory_limit_mb', 256),
        points=_non_negative_int(data, 'points', 100),
        solution_code=str(data.get('solution_code', '')),
        solution_language=str(data.get('solution_language', '')),
        created_by=g.user.id,
    )
    db.session.add(problem)
    db.session.flush()  # Get problem.id

    for tc in test_cases:
        db.session.add(TestCase(problem_id=problem.id, **tc))
    db.session.commit()

    current_app.logger.info('Problem %s created by %s with %d test cases',
                            problem.id, g.user.id, len(test_cases))
    return jsonify({'problem_id': problem.id, 'test_case_count': len(test_cases)}), 201


@problem_bp.route('/problems/<problem_id>/stats')
@require_auth
def problem_stats(problem_id):
    """The caller's aggregate stats for one problem."""
    if db.session.get(Problem, problem_id) is None:
        abort(404, description='Problem not found')

    stats = UserProblemStats.query.filter_by(
        user_id=g.user.id, problem_id=problem_id
    ).first()
    if stats is None:
        return jsonify({
            'user_id': g.user.id,
            'problem_id': problem_id,
            'attempts': 0,
            'solved': False,
            'best_execution_time_ms': None,
            'best_memory_used_mb': None,
            'points_earned': 0,
            'last_attempted_at': None,
        })
    return jsonify(stats.to_dict())


@problem_bp.route('/challenges', methods=['POST'])
@require_author
def create_challenge():
    """Create a challenge that submissions can be grouped under."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description='Expected a JSON object')

    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        abort(400, description='Missing required fields')

    challenge = Challenge(
        title=title.strip(),
        description=str(data.get('description', '')).strip(),
    )
    db.session.add(challenge)
    db.session.commit()
    return jsonify({'challenge_id': challenge.id}), 201


@problem_bp.route('/challenges/<challenge_id>/submissions')
@require_auth
def challenge_submissions(challenge_id):
    """All submissions made under a challenge, newest first."""
    if db.session.get(Challenge, challenge_id) is None:
        abort(404, description='Challenge not found')

    submissions = Submission.query.filter_by(challenge_id=challenge_id)\
        .order_by(Submission.created_at.desc()).all()
    return jsonify([s.to_dict() for s in submissions])


@problem_bp.route('/leaderboard')
@require_auth
def leaderboard():
    """Users ranked by points earned, then problems solved."""
    limit = request.args.get('limit', LEADERBOARD_DEFAULT_LIMIT, type=int)
    limit = max(1, min(limit, LEADERBOARD_MAX_LIMIT))

    total_points = func.sum(UserProblemStats.points_earned)
    solved_count = func.sum(case((UserProblemStats.solved == True, 1), else_=0))  # noqa: E712
    rows = db.session.query(
        UserProblemStats.user_id,
        User.name,
        total_points.label('total_points'),
        solved_count.label('problems_solved'),
        func.sum(UserProblemStats.attempts).label('total_attempts'),
    ).join(User, User.id == UserProblemStats.user_id)\
        .group_by(UserProblemStats.user_id, User.name)\
        .order_by(total_points.desc(), solved_count.desc(), UserProblemStats.user_id)\
        .limit(limit).all()

    return jsonify([
        {
            'rank': rank,
            'user_id': row.user_id,
            'name': row.name,
            'total_points': int(row.total_points or 0),
            'problems_solved': int(row.problems_solved or 0),
            'total_attempts': int(row.total_attempts or 0),
        }
        for rank, row in enumerate(rows, start=1)
    ])
