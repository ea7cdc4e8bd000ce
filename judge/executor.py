"""
Sandbox Execution Client.

Sends one program run to the external Piston execution API and converts
its response into an ExecutionResult. Nothing outside this module knows
the sandbox's wire format.
"""

import logging
from collections import namedtuple

import requests

logger = logging.getLogger(__name__)


ExecutionResult = namedtuple('ExecutionResult', [
    'stdout', 'stderr', 'compile_stderr', 'exit_code', 'signal',
    'time_ms', 'memory_bytes',
])

# The sandbox could not be reached or answered with something unusable.
# This is not a program failure.
ExecutionFailure = namedtuple('ExecutionFailure', ['message'])


class ExecutionError(Exception):
    """Base class for execution client errors."""


class LanguageUnsupported(ExecutionError):
    """The language has no sandbox runtime mapping."""

    def __init__(self, language):
        super().__init__(f'Unsupported language: {language}')
        self.language = language


class SandboxUnavailable(ExecutionError):
    """Transport error, non-2xx status, or malformed sandbox response."""


def _text(value):
    if value is None:
        return ''
    if not isinstance(value, str):
        raise SandboxUnavailable(f'Expected string in sandbox response, got {type(value).__name__}')
    return value


def _number(value):
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SandboxUnavailable(f'Expected number in sandbox response, got {type(value).__name__}')
    return value


def parse_sandbox_response(payload):
    """Validate a sandbox JSON body and convert it to an ExecutionResult.

    Interpreted languages have no ``compile`` stage, so that key is optional.
    ``run`` is mandatory unless compilation failed (non-empty compile stderr
    or a non-zero compile code); anything else raises SandboxUnavailable.
    """
    if not isinstance(payload, dict):
        raise SandboxUnavailable('Sandbox response is not a JSON object')

    compile_stage = payload.get('compile')
    compile_stderr = ''
    if compile_stage is not None:
        if not isinstance(compile_stage, dict):
            raise SandboxUnavailable('Sandbox compile stage is malformed')
        compile_stderr = _text(compile_stage.get('stderr'))
        compile_code = compile_stage.get('code')
        if not compile_stderr and compile_code not in (None, 0):
            compile_stderr = (_text(compile_stage.get('output')).strip()
                              or f'Compilation failed with exit code {compile_code}')

    run = payload.get('run')
    if run is None and compile_stderr:
        # The sandbox skips the run stage when compilation fails
        return ExecutionResult(
            stdout='',
            stderr='',
            compile_stderr=compile_stderr,
            exit_code=None,
            signal=None,
            time_ms=0,
            memory_bytes=0,
        )
    if not isinstance(run, dict):
        message = payload.get('message') if isinstance(payload.get('message'), str) else ''
        raise SandboxUnavailable(f'Sandbox response has no run stage {message}'.strip())

    exit_code = run.get('code')
    if exit_code is not None and (isinstance(exit_code, bool) or not isinstance(exit_code, int)):
        raise SandboxUnavailable('Sandbox exit code is malformed')

    signal = run.get('signal')
    if signal is not None and not isinstance(signal, str):
        raise SandboxUnavailable('Sandbox signal is malformed')

    # Newer sandbox builds report wall_time instead of time
    time_ms = run.get('time')
    if time_ms is None:
        time_ms = run.get('wall_time')

    return ExecutionResult(
        stdout=_text(run.get('stdout')),
        stderr=_text(run.get('stderr')),
        compile_stderr=compile_stderr,
        exit_code=exit_code,
        signal=signal,
        time_ms=_number(time_ms),
        memory_bytes=_number(run.get('memory')),
    )


class PistonClient:
    """Client for a Piston (https://github.com/engineer-man/piston) execute endpoint.

    Args:
        api_url: Full URL of the execute endpoint
        runtimes: Mapping of language id -> {'language', 'version', 'extension'}
        session: Optional requests.Session (or compatible object with .post)
        request_timeout: HTTP timeout in seconds

    Requests are never retried: a repeated run could be scored twice.
    """

    def __init__(self, api_url, runtimes, session=None, request_timeout=30):
        self.api_url = api_url
        self.runtimes = dict(runtimes)
        self.session = session or requests.Session()
        self.request_timeout = request_timeout

    def supports(self, language):
        return language in self.runtimes

    def build_request(self, source_code, language, stdin, time_limit_ms, memory_limit_mb):
        runtime = self.runtimes.get(language)
        if runtime is None:
            raise LanguageUnsupported(language)

        memory_limit_bytes = memory_limit_mb * 1024 * 1024
        return {
            'language': runtime['language'],
            'version': runtime['version'],
            'files': [
                {'name': f"main{runtime.get('extension', '')}", 'content': source_code},
            ],
            'stdin': stdin or '',
            'compile_timeout': time_limit_ms,
            'run_timeout': time_limit_ms,
            'compile_memory_limit': memory_limit_bytes,
            'run_memory_limit': memory_limit_bytes,
        }

    def execute(self, source_code, language, stdin, time_limit_ms, memory_limit_mb):
        """Run source code once in the sandbox.

        Returns:
            ExecutionResult on any sandbox answer (including a crashing
            program), ExecutionFailure when the sandbox itself failed.

        Raises:
            LanguageUnsupported: before any network call is made.
        """
        body = self.build_request(source_code, language, stdin, time_limit_ms, memory_limit_mb)

        try:
            response = self.session.post(
                self.api_url,
                json=body,
                headers={'Content-Type': 'application/json'},
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            logger.warning('Sandbox request failed: %s', e)
            return ExecutionFailure(f'Execution service unavailable: {e}')

        if not 200 <= response.status_code < 300:
            logger.warning('Sandbox returned HTTP %s: %s',
                           response.status_code, response.text[:200])
            return ExecutionFailure(f'Execution service error: HTTP {response.status_code}')

        try:
            return parse_sandbox_response(response.json())
        except ValueError:
            logger.warning('Sandbox returned a non-JSON body')
            return ExecutionFailure('Execution service error: invalid response body')
        except SandboxUnavailable as e:
            logger.warning('Sandbox returned a malformed body: %s', e)
            return ExecutionFailure(f'Execution service error: {e}')
