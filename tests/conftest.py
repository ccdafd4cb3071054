import subprocess

import pytest

from grocery_agent import dstask


class FakeRun:
    """Stands in for subprocess.run and records every argv it receives."""

    def __init__(self):
        self.calls = []
        self.envs = []
        self.responses = []

    def queue(self, stdout="", returncode=0, stderr=""):
        self.responses.append((stdout, returncode, stderr))

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        self.envs.append(kwargs.get("env"))
        stdout, returncode, stderr = self.responses.pop(0) if self.responses else ("", 0, "")
        if isinstance(stdout, Exception):
            raise stdout
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(dstask.subprocess, "run", fake)
    return fake


@pytest.fixture
def client(fake_run):
    return dstask.DstaskClient(use_mise=False)
