"""Shared fixtures: stand-in build executables written as small shell scripts."""

import os
import stat
import sys

import pytest

# Project root = parent directory of this tests/ folder
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from models import BuildParameters  # noqa: E402


def _write_script(path, body):
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def echo_executable(tmp_path):
    """Prints each argument on its own stdout line and a marker on stderr."""
    return _write_script(
        tmp_path / "fake-mkarchqemu",
        'for arg in "$@"; do echo "$arg"; done\n'
        'echo "building image" >&2\n',
    )


@pytest.fixture
def silent_executable(tmp_path):
    return _write_script(tmp_path / "silent-mkarchqemu", "exit 0\n")


@pytest.fixture
def failing_executable(tmp_path):
    return _write_script(tmp_path / "failing-mkarchqemu", 'echo "bad profile" >&2\nexit 3\n')


class Gate:
    """A build that blocks until release() is called (or ~10s pass)."""

    def __init__(self, tmp_path):
        self.flag = tmp_path / "release"
        self.executable = _write_script(
            tmp_path / "gated-mkarchqemu",
            "i=0\n"
            f'while [ ! -f "{self.flag}" ] && [ $i -lt 200 ]; do sleep 0.05; i=$((i+1)); done\n'
            'echo "gate released $*"\n',
        )

    def release(self):
        self.flag.write_text("go")


@pytest.fixture
def gate(tmp_path):
    g = Gate(tmp_path)
    yield g
    g.release()


@pytest.fixture
def sleeping_executable(tmp_path):
    return _write_script(tmp_path / "slow-mkarchqemu", 'echo "starting"\nexec sleep 30\n')


@pytest.fixture
def params():
    return BuildParameters(
        out_dir="/tmp/o",
        work_dir="/tmp/w",
        img_size="4G",
        swap=None,
        profile_dir="/profiles/base",
    )


@pytest.fixture
def forking_executable(tmp_path):
    """Leaves a background child holding stdout/stderr open."""
    return _write_script(tmp_path / "forking-mkarchqemu", 'echo "start"\nsleep 6 &\nwait\n')
