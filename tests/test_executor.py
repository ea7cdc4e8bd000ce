import pytest
import requests

from judge.executor import (ExecutionFailure, ExecutionResult, LanguageUnsupported,
                            PistonClient, SandboxUnavailable, parse_sandbox_response)
from judge.verdicts import COMPILATION_ERROR, classify

RUNTIMES = {
    'python': {'language': 'python', 'version': '3.10.0', 'extension': '.py'},
    'cpp': {'language': 'cpp', 'version': '10.2.0', 'extension': '.cpp'},
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON object could be decoded')
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({'url': url, 'json': json, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _client(session):
    return PistonClient('http://sandbox/execute', RUNTIMES, session=session, request_timeout=5)


def test_request_body_matches_sandbox_contract():
    session = FakeSession(FakeResponse(payload={'run': {'stdout': '3\n', 'stderr': '', 'code': 0}}))
    _client(session).execute('print(3)', 'python', '1 2', 1500, 64)

    sent = session.requests[0]
    assert sent['url'] == 'http://sandbox/execute'
    assert sent['timeout'] == 5
    assert sent['json'] == {
        'language': 'python',
        'version': '3.10.0',
        'files': [{'name': 'main.py', 'content': 'print(3)'}],
        'stdin': '1 2',
        'compile_timeout': 1500,
        'run_timeout': 1500,
        'compile_memory_limit': 64 * 1024 * 1024,
        'run_memory_limit': 64 * 1024 * 1024,
    }


def test_unsupported_language_never_contacts_sandbox():
    session = FakeSession(FakeResponse(payload={}))
    with pytest.raises(LanguageUnsupported):
        _client(session).execute('x', 'cobol', '', 1000, 64)
    assert session.requests == []


def test_interpreted_run_without_compile_stage():
    payload = {'run': {'stdout': 'hi\n', 'stderr': '', 'code': 0, 'signal': None,
                       'time': 12, 'memory': 2048}}
    result = _client(FakeSession(FakeResponse(payload=payload))).execute('x', 'python', '', 1000, 64)

    assert isinstance(result, ExecutionResult)
    assert result.stdout == 'hi\n'
    assert result.compile_stderr == ''
    assert result.time_ms == 12
    assert result.memory_bytes == 2048


def test_compile_stage_stderr_is_surfaced():
    payload = {'compile': {'stderr': 'error: expected ;'}, 'run': {'stdout': '', 'stderr': ''}}
    result = _client(FakeSession(FakeResponse(payload=payload))).execute('x', 'cpp', '', 1000, 64)
    assert result.compile_stderr == 'error: expected ;'


def test_non_zero_exit_is_not_a_client_failure():
    payload = {'run': {'stdout': '', 'stderr': '', 'code': 1}}
    result = _client(FakeSession(FakeResponse(payload=payload))).execute('x', 'python', '', 1000, 64)
    assert isinstance(result, ExecutionResult)
    assert result.exit_code == 1


def test_transport_error_returns_failure():
    session = FakeSession(error=requests.ConnectionError('connection refused'))
    result = _client(session).execute('x', 'python', '', 1000, 64)
    assert isinstance(result, ExecutionFailure)
    assert 'connection refused' in result.message
    assert len(session.requests) == 1


def test_non_2xx_returns_failure():
    session = FakeSession(FakeResponse(status_code=503, text='overloaded'))
    result = _client(session).execute('x', 'python', '', 1000, 64)
    assert isinstance(result, ExecutionFailure)
    assert '503' in result.message


def test_non_json_body_returns_failure():
    session = FakeSession(FakeResponse(status_code=200, payload=None))
    result = _client(session).execute('x', 'python', '', 1000, 64)
    assert isinstance(result, ExecutionFailure)


def test_parse_rejects_missing_run_stage():
    with pytest.raises(SandboxUnavailable):
        parse_sandbox_response({'message': 'runtime is unknown'})


def test_parse_rejects_wrong_field_types():
    with pytest.raises(SandboxUnavailable):
        parse_sandbox_response({'run': {'stdout': 5}})
    with pytest.raises(SandboxUnavailable):
        parse_sandbox_response({'run': {'stdout': '', 'time': 'fast'}})
    with pytest.raises(SandboxUnavailable):
        parse_sandbox_response(['run'])


def test_parse_falls_back_to_wall_time():
    result = parse_sandbox_response({'run': {'stdout': '', 'wall_time': 40, 'memory': 10}})
    assert result.time_ms == 40


def test_malformed_body_becomes_failure():
    session = FakeSession(FakeResponse(payload={'run': 'oops'}))
    result = _client(session).execute('x', 'python', '', 1000, 64)
    assert isinstance(result, ExecutionFailure)


def test_compile_failure_without_run_stage():
    payload = {'compile': {'stdout': '', 'stderr': 'main.cpp:1: error', 'code': 1}}
    result = _client(FakeSession(FakeResponse(payload=payload))).execute('x', 'cpp', '', 1000, 64)

    assert isinstance(result, ExecutionResult)
    assert result.compile_stderr == 'main.cpp:1: error'
    assert result.stdout == ''
    assert classify(result, 'anything').verdict == COMPILATION_ERROR


def test_compile_failure_with_empty_stderr_uses_exit_code():
    result = parse_sandbox_response({'compile': {'stderr': '', 'output': '', 'code': 2}})
    assert result.compile_stderr == 'Compilation failed with exit code 2'
    assert classify(result, '').verdict == COMPILATION_ERROR


def test_clean_compile_still_needs_run_stage():
    with pytest.raises(SandboxUnavailable):
        parse_sandbox_response({'compile': {'stderr': '', 'code': 0}})
