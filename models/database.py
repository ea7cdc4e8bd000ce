import json
import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


def _new_id():
    return str(uuid.uuid4())


class User(db.Model):
    """An authenticated platform user (submitter or problem author)."""
    __tablename__ = 'users'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(255), default='Unknown')
    role = db.Column(db.String(50), default='member')  # 'member' or 'author'
    created_at = db.Column(db.DateTime, default=_utcnow)

    submissions = db.relationship('Submission', backref='user', lazy='dynamic')

    def __repr__(self):
        return f'<User {self.name} ({self.role})>'


class Problem(db.Model):
    """A programming problem. Read-only while it is being judged."""
    __tablename__ = 'problems'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default='')
    time_limit_ms = db.Column(db.Integer, default=2000)  # milliseconds
    memory_limit_mb = db.Column(db.Integer, default=256)  # megabytes
    points = db.Column(db.Integer, default=100)
    # Reference solution, never used by the judge itself
    solution_code = db.Column(db.Text, default='')
    solution_language = db.Column(db.String(20), default='')
    created_by = db.Column(db.String(64), db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow)

    test_cases = db.relationship('TestCase', backref='problem', lazy='dynamic',
                                 cascade='all, delete-orphan',
                                 order_by='TestCase.order_index')
    submissions = db.relationship('Submission', backref='problem', lazy='dynamic')

    def __repr__(self):
        return f'<Problem {self.title}>'


class Challenge(db.Model):
    """A timed event that groups submissions."""
    __tablename__ = 'challenges'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default='')
    starts_at = db.Column(db.DateTime, nullable=True)
    ends_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow)

    submissions = db.relationship('Submission', backref='challenge', lazy='dynamic')

    def __repr__(self):
        return f'<Challenge {self.title}>'


class TestCase(db.Model):
    """A test case for a problem (input → expected output)."""
    __tablename__ = 'test_cases'

    id = db.Column(db.Integer, primary_key=True)
    problem_id = db.Column(db.String(36), db.ForeignKey('problems.id'), nullable=False)
    input_data = db.Column(db.Text, nullable=False, default='')
    expected_output = db.Column(db.Text, nullable=False, default='')
    is_sample = db.Column(db.Boolean, default=False)  # Visible to submitters
    order_index = db.Column(db.Integer, default=0)

    def __repr__(self):
        return f'<TestCase #{self.id} for Problem {self.problem_id}>'


class Submission(db.Model):
    """One judging attempt. Written only by the submission store."""
    __tablename__ = 'submissions'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    problem_id = db.Column(db.String(36), db.ForeignKey('problems.id'), nullable=False)
    user_id = db.Column(db.String(64), db.ForeignKey('users.id'), nullable=False)
    challenge_id = db.Column(db.String(36), db.ForeignKey('challenges.id'), nullable=True)
    code = db.Column(db.Text, nullable=False)
    language = db.Column(db.String(20), nullable=False)
    # pending, running, accepted, wrong_answer, time_limit_exceeded,
    # compilation_error, runtime_error
    status = db.Column(db.String(32), default='pending', nullable=False)
    test_cases_passed = db.Column(db.Integer, default=0, nullable=False)
    test_cases_total = db.Column(db.Integer, default=0, nullable=False)
    execution_time_ms = db.Column(db.Float, nullable=True)
    memory_used_mb = db.Column(db.Float, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    results_json = db.Column(db.Text, default='[]')  # Per-test-case results as JSON
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def results(self):
        try:
            return json.loads(self.results_json) if self.results_json else []
        except json.JSONDecodeError:
            return []

    def to_dict(self, include_code=False):
        data = {
            'submission_id': self.id,
            'problem_id': self.problem_id,
            'user_id': self.user_id,
            'challenge_id': self.challenge_id,
            'language': self.language,
            'status': self.status,
            'test_cases_passed': self.test_cases_passed,
            'test_cases_total': self.test_cases_total,
            'execution_time_ms': self.execution_time_ms,
            'memory_used_mb': self.memory_used_mb,
            'error_message': self.error_message,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_code:
            data['code'] = self.code
        return data

    def __repr__(self):
        return f'<Submission #{self.id} {self.status}>'


class UserProblemStats(db.Model):
    """Aggregate of all attempts by one user on one problem."""
    __tablename__ = 'user_problem_stats'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'problem_id', name='uq_user_problem_stats'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), db.ForeignKey('users.id'), nullable=False)
    problem_id = db.Column(db.String(36), db.ForeignKey('problems.id'), nullable=False)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    solved = db.Column(db.Boolean, default=False, nullable=False)
    best_execution_time_ms = db.Column(db.Float, nullable=True)
    best_memory_used_mb = db.Column(db.Float, nullable=True)
    points_earned = db.Column(db.Integer, default=0, nullable=False)
    last_attempted_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'problem_id': self.problem_id,
            'attempts': self.attempts,
            'solved': self.solved,
            'best_execution_time_ms': self.best_execution_time_ms,
            'best_memory_used_mb': self.best_memory_used_mb,
            'points_earned': self.points_earned,
            'last_attempted_at': self.last_attempted_at.isoformat() if self.last_attempted_at else None,
        }

    def __repr__(self):
        return f'<UserProblemStats {self.user_id}/{self.problem_id} attempts={self.attempts}>'
