# cli.py
import shlex

import click

from config import (
    DEFAULT_BIND,
    DEFAULT_EXECUTABLE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
    LOG_LEVELS,
    ServerConfig,
    configure_logging,
)
from engine import JobEngine, build_command
from models import BuildParameters, JobState, RunAcceptance


def executable_option(f):
    return click.option(
        "--executable",
        default=DEFAULT_EXECUTABLE,
        envvar="MKARCHQEMU_EXECUTABLE",
        show_default=True,
        help="Build executable to launch",
    )(f)


def timeout_option(f):
    return click.option(
        "--timeout-seconds",
        default=None,
        type=float,
        envvar="MKARCHQEMU_TIMEOUT",
        help="Kill a build that runs longer than this (seconds)",
    )(f)


def log_level_option(f):
    return click.option(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        envvar="MKARCHQEMU_LOG_LEVEL",
        type=click.Choice(LOG_LEVELS),
        show_default=True,
        help="Logging verbosity",
    )(f)


@click.group()
def cli():
    """mkarchqemu-server - run mkarchqemu builds on request"""
    pass


# ---------------- Serve ----------------
@cli.command()
@click.option("-b", "--bind", "bind_address", default=DEFAULT_BIND, envvar="MKARCHQEMU_BIND",
              show_default=True, help="Bind address for the server")
@click.option("-p", "--port", default=DEFAULT_PORT, envvar="MKARCHQEMU_PORT",
              type=click.IntRange(0, 65535), show_default=True, help="Port number for the server")
@executable_option
@timeout_option
@log_level_option
def serve(bind_address, port, executable, timeout_seconds, log_level):
    """Start the HTTP build server"""
    import uvicorn
    from server import create_app

    config = ServerConfig(
        bind_address=bind_address,
        port=port,
        executable=executable,
        timeout_seconds=timeout_seconds,
        log_level=log_level,
    )
    configure_logging(config.log_level)

    engine = JobEngine(executable=config.executable, timeout_seconds=config.timeout_seconds)
    app = create_app(engine)

    click.echo(f"🚀 Starting the server on {config.address} (executable={config.executable})")
    uvicorn.run(app, host=config.bind_address, port=config.port, log_level=config.log_level)


# ---------------- One-shot build ----------------
@cli.command()
@click.option("-o", "--out-dir", required=True, help="Output directory for the image")
@click.option("-w", "--work-dir", required=True, help="Working directory for the build")
@click.option("-s", "--img-size", default=None, help="Image size, e.g. 4G")
@click.option("--swap", default=None, help="Swap size, e.g. 2G")
@click.argument("profile_dir")
@executable_option
@timeout_option
@log_level_option
@click.option("--dry-run", is_flag=True, help="Print the command line and exit")
def build(out_dir, work_dir, img_size, swap, profile_dir, executable, timeout_seconds, log_level, dry_run):
    """Run a single build in the foreground and print its output"""
    params = BuildParameters(
        out_dir=out_dir,
        work_dir=work_dir,
        img_size=img_size,
        swap=swap,
        profile_dir=profile_dir,
    )
    if dry_run:
        click.echo(shlex.join(build_command(params, executable)))
        return

    configure_logging(log_level)
    engine = JobEngine(executable=executable, timeout_seconds=timeout_seconds)
    engine.set_parameters(params)

    accepted = engine.trigger_run()
    if accepted is RunAcceptance.STARTED:
        engine.wait()

    status = engine.get_status()
    output = engine.get_last_output()
    if output is not None:
        click.echo(output)

    if status.state is JobState.FAILED:
        click.echo(f"❌ Build failed: {status.reason}", err=True)
        raise SystemExit(1)
    click.echo("✅ Build finished.")


# ---------------- Entrypoint ----------------
if __name__ == "__main__":
    cli()
