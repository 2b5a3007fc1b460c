from unittest.mock import patch

from click.testing import CliRunner

from cli import cli
from engine import JobEngine


def test_build_dry_run():
    runner = CliRunner()
    result = runner.invoke(cli, [
        "build", "-o", "/tmp/o", "-w", "/tmp/w", "-s", "4G", "--swap", "2G",
        "--executable", "/usr/bin/mkarchqemu", "--dry-run", "/profiles/base",
    ])
    assert result.exit_code == 0
    assert result.output.strip() == "/usr/bin/mkarchqemu -o /tmp/o -w /tmp/w -s 4G --swap=2G /profiles/base"


def test_build_runs_executable(echo_executable):
    runner = CliRunner()
    result = runner.invoke(cli, [
        "build", "-o", "/tmp/o", "-w", "/tmp/w", "--executable", echo_executable, "/profiles/base",
    ])
    assert result.exit_code == 0, result.output
    assert "stdout: -o\n/tmp/o\n-w\n/tmp/w\n/profiles/base\n" in result.output
    assert "Build finished" in result.output


def test_build_missing_executable_exits_nonzero(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, [
        "build", "-o", "o", "-w", "w", "--executable", str(tmp_path / "missing"), "prof",
    ])
    assert result.exit_code == 1
    assert "Build failed" in result.output


def test_build_requires_out_dir():
    result = CliRunner().invoke(cli, ["build", "-w", "w", "prof"])
    assert result.exit_code == 2


@patch("uvicorn.run")
def test_serve_uses_bind_and_port(mock_run):
    result = CliRunner().invoke(cli, ["serve", "-b", "0.0.0.0", "-p", "9090", "--executable", "/opt/mk"])
    assert result.exit_code == 0, result.output

    app = mock_run.call_args.args[0]
    assert mock_run.call_args.kwargs["host"] == "0.0.0.0"
    assert mock_run.call_args.kwargs["port"] == 9090
    assert isinstance(app.state.engine, JobEngine)
    assert app.state.engine.executable == "/opt/mk"


@patch("uvicorn.run")
def test_serve_defaults(mock_run):
    result = CliRunner().invoke(cli, ["serve"], env={})
    assert result.exit_code == 0, result.output
    assert mock_run.call_args.kwargs["host"] == "127.0.0.1"
    assert mock_run.call_args.kwargs["port"] == 8080


@patch("uvicorn.run")
def test_serve_reads_environment(mock_run):
    result = CliRunner().invoke(cli, ["serve"], env={"MKARCHQEMU_PORT": "7000"})
    assert result.exit_code == 0, result.output
    assert mock_run.call_args.kwargs["port"] == 7000


def test_serve_rejects_bad_port():
    result = CliRunner().invoke(cli, ["serve", "-p", "70000"])
    assert result.exit_code == 2


def test_build_dry_run_quotes_arguments_with_spaces():
    result = CliRunner().invoke(cli, [
        "build", "-o", "/tmp/my out", "-w", "/tmp/w", "--executable", "mk", "--dry-run", "prof",
    ])
    assert result.exit_code == 0
    assert result.output.strip() == "mk -o '/tmp/my out' -w /tmp/w prof"
