# models.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True, kw_only=True)
class BuildParameters:
    out_dir: str
    work_dir: str
    img_size: Optional[str] = None
    swap: Optional[str] = None    # passed as --swap=<value>
    profile_dir: str


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Names the HTTP API has always used for each state
_WIRE_NAMES = {
    JobState.IDLE: "Waiting",
    JobState.RUNNING: "Running",
    JobState.COMPLETED: "Finished",
}


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    reason: Optional[str] = None   # only set for FAILED

    @classmethod
    def idle(cls):
        return cls(JobState.IDLE)

    @classmethod
    def running(cls):
        return cls(JobState.RUNNING)

    @classmethod
    def completed(cls):
        return cls(JobState.COMPLETED)

    @classmethod
    def failed(cls, reason: str):
        return cls(JobState.FAILED, reason)

    def to_wire(self) -> Union[str, dict]:
        if self.state is JobState.FAILED:
            return {"Error": self.reason or ""}
        return _WIRE_NAMES[self.state]

    def __str__(self):
        if self.state is JobState.FAILED:
            return f"failed ({self.reason})"
        return self.state.value


class RunAcceptance(str, Enum):
    STARTED = "started"
    NO_PARAMETERS = "no_parameters"
    ALREADY_RUNNING = "already_running"
    SPAWN_FAILED = "spawn_failed"


def format_output(stdout: bytes, stderr: bytes) -> str:
    """Combine both streams into one labelled blob; both labels are always present."""
    out = (stdout or b"").decode("utf-8", errors="replace")
    err = (stderr or b"").decode("utf-8", errors="replace")
    return f"stdout: {out}\nstderr: {err}"
