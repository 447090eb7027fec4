import sys

import pytest

from argodeploy.errors import DeployerError
from argodeploy.services.command_runner import CommandRunner, redact_text


class RecordingLogger:
    def __init__(self):
        self.messages = []

    def debug(self, message, *args, **_kwargs):
        self.messages.append(message % args if args else message)

    def warning(self, message, *args, **_kwargs):
        self.messages.append(message % args if args else message)


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=RecordingLogger())

    with pytest.raises(DeployerError, match="boom"):
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(1)"],
            check=True,
            capture_output=True,
        )


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=RecordingLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_retries_before_success(tmp_path, monkeypatch):
    runner = CommandRunner(logger=RecordingLogger())
    monkeypatch.chdir(tmp_path)

    command = [
        sys.executable,
        "-c",
        (
            "from pathlib import Path;"
            "p=Path('retry-counter.txt');"
            "n=int(p.read_text()) if p.exists() else 0;"
            "p.write_text(str(n+1));"
            "import sys; sys.exit(1 if n == 0 else 0)"
        ),
    ]

    result = runner.run(
        command,
        check=True,
        capture_output=True,
        retry_count=1,
        retry_backoff_seconds=0.0,
    )

    assert result.returncode == 0


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=RecordingLogger())

    with pytest.raises(DeployerError, match="timed out"):
        runner.run(
            [sys.executable, "-c", "import time; time.sleep(2)"],
            check=True,
            capture_output=True,
            timeout=0.1,
        )


def test_command_runner_reports_missing_binary():
    runner = CommandRunner(logger=RecordingLogger())

    with pytest.raises(DeployerError, match="Required command not found: argodeploy-no-such-binary"):
        runner.run(["argodeploy-no-such-binary", "--version"])


def test_command_runner_redacts_secrets_in_logs_and_errors():
    logger = RecordingLogger()
    runner = CommandRunner(logger=logger)

    with pytest.raises(DeployerError) as excinfo:
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad s3cr3t'); sys.exit(2)", "s3cr3t"],
            check=True,
            capture_output=True,
            redact=["s3cr3t"],
        )

    assert "s3cr3t" not in str(excinfo.value)
    assert all("s3cr3t" not in message for message in logger.messages)
    assert "******" in str(excinfo.value)


def test_redact_text_ignores_empty_secrets():
    assert redact_text("login --password pw", ["", "pw"]) == "login --password ******"
