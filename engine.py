# engine.py
import logging
import os
import shlex
import signal
import subprocess
import threading
from datetime import datetime

from config import DEFAULT_EXECUTABLE
from models import BuildParameters, JobState, JobStatus, RunAcceptance, format_output

logger = logging.getLogger(__name__)

# how long to wait for pipes to close after killing a timed-out build
DRAIN_SECONDS = 5


def build_command(params: BuildParameters, executable: str = DEFAULT_EXECUTABLE) -> list:
    """
    Assemble the mkarchqemu argv for a parameter snapshot:
        <executable> -o OUT -w WORK [-s SIZE] [--swap=SWAP] PROFILE
    Optional flags are left out entirely when their value is None.
    """
    cmd = [executable, "-o", params.out_dir, "-w", params.work_dir]
    if params.img_size is not None:
        cmd += ["-s", params.img_size]
    if params.swap is not None:
        cmd.append(f"--swap={params.swap}")
    cmd.append(params.profile_dir)
    return cmd


class JobEngine:
    """
    Single-slot launcher for the build executable.

    Parameters, status and last output each sit behind their own lock so a
    status poll never waits on a parameter update. No lock is held while the
    build process runs; a daemon thread per run waits for it and writes the
    result back. A run id, bumped on every accepted trigger, lets a completion
    that is no longer the latest run be dropped instead of overwriting state.
    """

    def __init__(self, executable=DEFAULT_EXECUTABLE, timeout_seconds=None):
        self.executable = executable
        self.timeout_seconds = timeout_seconds

        self._params = None
        self._params_lock = threading.Lock()

        self._status = JobStatus.idle()
        self._run_id = 0              # guarded by _status_lock
        self._status_lock = threading.Lock()

        self._last_output = None
        self._output_lock = threading.Lock()

        self._waiter = None           # completion thread of the latest run

    # ---------------- State accessors ----------------
    def set_parameters(self, params: BuildParameters):
        with self._params_lock:
            self._params = params

    def get_parameters(self):
        with self._params_lock:
            return self._params

    def get_status(self) -> JobStatus:
        with self._status_lock:
            return self._status

    def get_last_output(self):
        with self._output_lock:
            return self._last_output

    # ---------------- Trigger ----------------
    def trigger_run(self) -> RunAcceptance:
        # BuildParameters is frozen, so holding the reference is the snapshot
        with self._params_lock:
            params = self._params
        if params is None:
            logger.warning("Parameters not set; ignoring run request.")
            return RunAcceptance.NO_PARAMETERS

        with self._status_lock:
            old = self._status
            if old.state is JobState.RUNNING:
                logger.warning("Run %s still in progress; rejecting new run.", self._run_id)
                return RunAcceptance.ALREADY_RUNNING
            self._run_id += 1
            run_id = self._run_id
            self._status = JobStatus.running()
        self._log_transition(run_id, old, JobStatus.running())

        cmd = build_command(params, self.executable)
        logger.info("Run %s: executing %s", run_id, shlex.join(cmd))
        try:
            # own session so a timeout can kill the whole process group
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            # ValueError: arguments with embedded NUL bytes
            self._finish(run_id, JobStatus.failed(str(e)))
            return RunAcceptance.SPAWN_FAILED

        waiter = threading.Thread(
            target=self._await_completion,
            args=(run_id, proc),
            name=f"build-run-{run_id}",
            daemon=True,
        )
        self._waiter = waiter
        waiter.start()
        return RunAcceptance.STARTED

    def wait(self, timeout=None) -> bool:
        """Block until the latest run's completion thread exits. True if nothing is left running."""
        waiter = self._waiter
        if waiter is not None:
            waiter.join(timeout)
            if waiter.is_alive():
                return False
        return self.get_status().state is not JobState.RUNNING

    # ---------------- Completion ----------------
    def _await_completion(self, run_id, proc):
        try:
            self._collect(run_id, proc)
        except Exception as e:
            logger.exception("Run %s: waiting on the build process failed", run_id)
            self._finish(run_id, JobStatus.failed(str(e) or type(e).__name__))

    def _collect(self, run_id, proc):
        start_time = datetime.now()
        try:
            stdout, stderr = proc.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            self._kill_group(proc)
            reason = f"timed out after {self.timeout_seconds}s"
            try:
                stdout, stderr = proc.communicate(timeout=DRAIN_SECONDS)
            except subprocess.TimeoutExpired:
                # something outside the process group still holds the pipes
                proc.stdout.close()
                proc.stderr.close()
                proc.wait()
                self._finish(run_id, JobStatus.failed(reason))
                return
            self._finish(run_id, JobStatus.failed(reason), format_output(stdout, stderr))
            return

        duration = (datetime.now() - start_time).total_seconds()
        self._finish(
            run_id,
            JobStatus.completed(),
            format_output(stdout, stderr),
            extra=f"(exit_code={proc.returncode}, duration={duration:.3f}s)",
        )

    @staticmethod
    def _kill_group(proc):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass  # whole group already exited

    def _finish(self, run_id, status, output=None, extra=""):
        """Apply a run's outcome. Output is left untouched when None."""
        with self._status_lock:
            if run_id != self._run_id:
                logger.warning("Run %s finished after run %s was accepted; discarding.", run_id, self._run_id)
                return
            old = self._status
            if output is not None:
                with self._output_lock:
                    self._last_output = output
            self._status = status
        self._log_transition(run_id, old, status, extra)

    def _log_transition(self, run_id, old_status, new_status, extra=""):
        level = logging.ERROR if new_status.state is JobState.FAILED else logging.INFO
        logger.log(level, "Run %s: %s → %s %s", run_id, old_status, new_status, extra)
