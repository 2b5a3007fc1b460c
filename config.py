# config.py
import logging
from dataclasses import dataclass
from typing import Optional

DEFAULT_BIND = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_EXECUTABLE = "/usr/bin/mkarchqemu"
DEFAULT_LOG_LEVEL = "info"

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


@dataclass
class ServerConfig:
    bind_address: str = DEFAULT_BIND
    port: int = DEFAULT_PORT
    executable: str = DEFAULT_EXECUTABLE
    timeout_seconds: Optional[float] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def address(self):
        return f"{self.bind_address}:{self.port}"


def configure_logging(level=DEFAULT_LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )
