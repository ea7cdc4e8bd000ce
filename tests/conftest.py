import os

# Keep the module-level app in app.py off the on-disk database
os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest

from config import Config
from app import create_app
from auth.bearer import make_token
from judge.executor import ExecutionResult, LanguageUnsupported
from models.database import db, User, Problem, TestCase as ProblemTestCase


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LANGUAGE_RUNTIMES = {
        'python': {'language': 'python', 'version': '3.10.0', 'extension': '.py'},
        'cpp': {'language': 'cpp', 'version': '10.2.0', 'extension': '.cpp'},
    }


def ran(stdout='', stderr='', compile_stderr='', exit_code=0, signal=None,
        time_ms=10, memory_bytes=1_000_000):
    """Build a sandbox result for scripting the fake executor."""
    return ExecutionResult(
        stdout=stdout, stderr=stderr, compile_stderr=compile_stderr,
        exit_code=exit_code, signal=signal, time_ms=time_ms,
        memory_bytes=memory_bytes,
    )


class FakeExecutor:
    """Scripted stand-in for the sandbox client.

    Each execute() call pops the next queued outcome; an Exception
    instance in the queue is raised instead of returned.
    """

    def __init__(self, runtimes):
        self.runtimes = dict(runtimes)
        self.outcomes = []
        self.calls = []

    def supports(self, language):
        return language in self.runtimes

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    def execute(self, source_code, language, stdin, time_limit_ms, memory_limit_mb):
        if language not in self.runtimes:
            raise LanguageUnsupported(language)
        self.calls.append({
            'source_code': source_code,
            'language': language,
            'stdin': stdin,
            'time_limit_ms': time_limit_ms,
            'memory_limit_mb': memory_limit_mb,
        })
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def app():
    app = create_app(TestConfig, executor=FakeExecutor(TestConfig.LANGUAGE_RUNTIMES))
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def executor(app):
    return app.extensions['judge_executor']


@pytest.fixture
def member(app):
    user = User(id='user-1', name='Ada', role='member')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def author(app):
    user = User(id='author-1', name='Grace', role='author')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {'Authorization': f'Bearer {make_token(user.id)}'}
    return _headers


@pytest.fixture
def make_problem(app):
    """Create a problem whose test cases echo their index: input 'i', output 'i'."""
    def _make(cases=3, samples=(0,), points=50, time_limit_ms=2000, memory_limit_mb=128):
        problem = Problem(title='Echo', time_limit_ms=time_limit_ms,
                          memory_limit_mb=memory_limit_mb, points=points)
        db.session.add(problem)
        db.session.flush()
        for i in range(cases):
            db.session.add(ProblemTestCase(
                problem_id=problem.id,
                input_data=str(i),
                expected_output=f'{i}\n',
                is_sample=i in samples,
                order_index=i,
            ))
        db.session.commit()
        return problem
    return _make
