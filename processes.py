import logging
import shutil
import subprocess
import tempfile
import threading

from collections import namedtuple

import signing_settings
from signing_errors import ProcessExecutionError, ProcessTimeoutError

logger = logging.getLogger(__name__)

ProcessResult = namedtuple('ProcessResult', ['output', 'exit_status'])

REDACTED = '***'

_SETTINGS_TIMEOUT = object()


def which(tool):
    path = shutil.which(tool)
    if path is None:
        raise ProcessExecutionError(tool, message='{} was not found on this host'.format(tool))
    return path


def redact(cmd, secrets=()):
    secrets = {secret for secret in secrets if secret}
    return [REDACTED if arg in secrets else arg for arg in cmd]


def command_line(cmd, secrets=()):
    return ' '.join(redact(cmd, secrets))


def collect_lines(stream):
    lines = []
    for raw_line in stream:
        line = raw_line.decode('utf-8', errors='replace').strip()
        if line:
            lines.append(line)
    return '\n'.join(lines)


class _Watchdog:
    """Kills every stage of a pipeline once the timeout elapses."""

    def __init__(self, processes, timeout):
        self.fired = False
        self._processes = processes
        self._timer = None
        if timeout is not None:
            self._timer = threading.Timer(timeout, self._kill)
            self._timer.daemon = True

    def _kill(self):
        self.fired = True
        for process in self._processes:
            if process.poll() is None:
                process.kill()

    def __enter__(self):
        if self._timer is not None:
            self._timer.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._timer is not None:
            self._timer.cancel()


def _resolve_timeout(timeout):
    if timeout is _SETTINGS_TIMEOUT:
        return signing_settings.load().process_timeout
    return timeout


def _build_command(executable, args):
    return [which(executable)] + [str(arg) for arg in args]


def _start(executable, cmd, secrets, **kwargs):
    try:
        return subprocess.Popen(cmd, stdout=subprocess.PIPE, **kwargs)
    except OSError as e:
        message = '{} could not be started: {}'.format(command_line(cmd, secrets), e.strerror or e)
        raise ProcessExecutionError(executable, message=message) from e


def _check(executable, exit_status, output, stderr_file, watchdog, timeout):
    if watchdog.fired:
        raise ProcessTimeoutError(executable, timeout, output=output)
    if exit_status != 0:
        stderr_file.seek(0)
        stderr = stderr_file.read().decode('utf-8', errors='replace').strip()
        raise ProcessExecutionError(executable, exit_status, output=output, stderr=stderr)


def run(executable, args=(), secrets=(), timeout=_SETTINGS_TIMEOUT):
    cmd = _build_command(executable, args)
    timeout = _resolve_timeout(timeout)
    logger.debug('+ %s', command_line(cmd, secrets))

    with tempfile.TemporaryFile() as stderr:
        process = _start(executable, cmd, secrets, stderr=stderr)
        with _Watchdog([process], timeout) as watchdog:
            with process.stdout:
                output = collect_lines(process.stdout)
            exit_status = process.wait()
        _check(executable, exit_status, output, stderr, watchdog, timeout)

    return ProcessResult(output, exit_status)


def run_piped(first_executable, first_args, second_executable, second_args, secrets=(), timeout=_SETTINGS_TIMEOUT):
    first_cmd = _build_command(first_executable, first_args)
    second_cmd = _build_command(second_executable, second_args)
    timeout = _resolve_timeout(timeout)
    logger.debug('+ %s | %s', command_line(first_cmd, secrets), command_line(second_cmd, secrets))

    with tempfile.TemporaryFile() as first_stderr, tempfile.TemporaryFile() as second_stderr:
        first = _start(first_executable, first_cmd, secrets, stderr=first_stderr)
        try:
            second = _start(second_executable, second_cmd, secrets, stdin=first.stdout, stderr=second_stderr)
        except ProcessExecutionError:
            first.kill()
            first.stdout.close()
            first.wait()
            raise
        # Only the second stage may hold the read end, so the first sees SIGPIPE if the second exits early.
        first.stdout.close()

        with _Watchdog([first, second], timeout) as watchdog:
            with second.stdout:
                output = collect_lines(second.stdout)
            second_status = second.wait()
            first_status = first.wait()

        # A first stage killed by a signal (SIGPIPE) is a symptom; the second stage's failure is the cause.
        if first_status < 0 and second_status != 0:
            _check(second_executable, second_status, output, second_stderr, watchdog, timeout)
        _check(first_executable, first_status, '', first_stderr, watchdog, timeout)
        _check(second_executable, second_status, output, second_stderr, watchdog, timeout)

    return ProcessResult(output, second_status)
