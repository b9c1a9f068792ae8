#!/usr/bin/env python3

import argparse
import argcomplete
import logging
import os
import sys

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from .ai import gather_context
from .app import run_session

logger = logging.getLogger(__name__)

CONFIG_PATH_VARIABLE = "CMD_ASSIST_CONFIG"
LOG_FILE_VARIABLE = "CMD_ASSIST_LOG"
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.env")
OUTPUT_FILE_MODE = 0o644

_config_loaded = False


@dataclass
class Argument(ABC):
    def __init__(self, help: str, kwargs: Optional[dict] = None):
        self.help = help
        self.kwargs = kwargs if kwargs is not None else {}

    @abstractmethod
    def add_to_parser(self, parser: argparse.ArgumentParser):
        pass


class OptionalArg(Argument):
    def __init__(
        self,
        short_option: str,
        long_option: str,
        help: str,
        kwargs: Optional[dict] = None,
    ):
        super().__init__(help=help, kwargs=kwargs)
        self.short_option = short_option
        self.long_option = long_option

    def add_to_parser(self, parser: argparse.ArgumentParser):
        parser.add_argument(
            self.short_option, self.long_option, help=self.help, **self.kwargs
        )


class PositionalArg(Argument):
    def __init__(self, name: str, help: str, kwargs: Optional[dict] = None):
        super().__init__(help=help, kwargs=kwargs)
        self.name = name

    def add_to_parser(self, parser: argparse.ArgumentParser):
        parser.add_argument(self.name, help=self.help, **self.kwargs)


ARGUMENTS: List[Argument] = [
    PositionalArg(
        name="output",
        help="File to write the accepted command to. Defaults to standard output.",
        kwargs={"nargs": "?", "default": None},
    ),
    OptionalArg(
        short_option="-l",
        long_option="--log-file",
        help="Write debug logs to this file.",
        kwargs={"default": None},
    ),
]


def _load_config():
    """
    Populates the environment from the packaged key=value config.

    Variables already set in the environment win over the file. A missing file
    is fine: the completion client reports missing values when it needs them.
    """
    global _config_loaded
    if _config_loaded:
        return

    config_path = os.getenv(CONFIG_PATH_VARIABLE) or DEFAULT_CONFIG_PATH
    if os.path.isfile(config_path):
        load_dotenv(config_path, override=False)
        logger.debug("Loaded configuration from %s", config_path)
    else:
        logger.debug("No configuration file at %s", config_path)

    _config_loaded = True


def _setup_logging(log_file: Optional[str]):
    # The terminal belongs to the prompt, so logs only ever go to a file.
    log_file = log_file or os.getenv(LOG_FILE_VARIABLE)
    if not log_file:
        return

    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def emit_result(command: str, output_path: Optional[str] = None):
    """
    Writes the accepted command verbatim, without a trailing newline.

    If `output_path` is given the file is created or overwritten, otherwise the
    command goes to standard output.
    """
    if output_path:
        fd = os.open(output_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, OUTPUT_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as output_file:
            output_file.write(command)
        logger.debug("Wrote command to %s", output_path)
    else:
        sys.stdout.write(command)
        sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Describe what you want to do and get a shell command back."
    )
    for arg in ARGUMENTS:
        arg.add_to_parser(parser)
    return parser


def run_cli(argv: Optional[List[str]] = None):
    """
    Parses command-line arguments, runs the interactive prompt and emits the
    accepted command.

    Args:
        argv: A list of strings representing the command-line arguments.
              If None, `sys.argv[1:]` is used automatically by `parse_args`.
    """
    parser = build_parser()

    # Enable argument auto-completion.
    argcomplete.autocomplete(parser)

    args = parser.parse_args(argv)
    _setup_logging(args.log_file)
    _load_config()

    try:
        session = run_session(gather_context())
    except Exception as e:
        print(f"Error running program: {e}", file=sys.stderr)
        sys.exit(1)

    if not (session.accepted and session.command):
        logger.debug("Nothing accepted, exiting")
        return

    try:
        emit_result(session.command, args.output)
    except OSError as e:
        print(f"Error writing result: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """The main entry point for the command-line interface, called by the `cmd-assist` script."""
    run_cli()


if __name__ == "__main__":
    main()
