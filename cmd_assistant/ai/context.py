import logging
import os
import subprocess
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


def _run(args: List[str]) -> str:
    result = subprocess.run(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=True,
    )
    return result.stdout.strip()


def _working_directory() -> str:
    return os.getcwd()


def _operating_system() -> str:
    return _run(["uname", "-a"])


def _path() -> str:
    return os.environ.get("PATH", "")


def _available_commands() -> str:
    return _run(["bash", "-c", "compgen -c | sort | uniq | tr '\\n' ' '"])


def _last_history_entry() -> str:
    return _run(["bash", "-c", "history 1"])


# Order matters: the snapshot ends up verbatim in every prompt.
PROBES: List[Tuple[str, Callable[[], str]]] = [
    ("PWD", _working_directory),
    ("OS", _operating_system),
    ("PATH", _path),
    ("COMMANDS", _available_commands),
    ("HISTORY", _last_history_entry),
]


def gather_context() -> str:
    """
    Collects a snapshot of the local shell environment, one `LABEL: value` per line.

    Every probe is optional. If one fails, its line is left out and the rest
    of the snapshot is still returned.
    """
    lines = []
    for label, probe in PROBES:
        try:
            value = probe()
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            logger.debug("Skipping %s context: %s", label, e)
            continue
        lines.append(f"{label}: {value}\n")

    return "".join(lines)
