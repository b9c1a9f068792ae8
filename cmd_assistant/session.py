import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .ai import CompletionError, request_command

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert shell assistant. Output only a single valid shell command.\n\n"
    'RETURN THE RESULT ONLY IN THE FOLLOWING JSON FORMAT: {"command": "<command>"}'
)

# Separates the context snapshot from what the user typed.
PROMPT_SEPARATOR = "---"

QUIT_KEYS = frozenset({"ctrl+c", "q", "escape"})
CONFIRM_KEY = "enter"
BACKSPACE_KEY = "backspace"


class Phase(Enum):
    EDITING = "editing"
    GENERATING = "generating"
    RESULT = "result"
    ERROR = "error"


class Effect(Enum):
    """What the event loop has to do after the session handled an event."""

    NONE = "none"
    GENERATE = "generate"
    QUIT = "quit"


@dataclass(frozen=True)
class GenerationOutcome:
    """The result of one generation attempt, handed back to the event loop."""

    command: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, command: str) -> "GenerationOutcome":
        return cls(command=command)

    @classmethod
    def failure(cls, error: str) -> "GenerationOutcome":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


def generate(prompt: str) -> GenerationOutcome:
    """
    Runs one completion request and wraps whatever happens into an outcome.

    This is meant to run off the event loop. It never touches a Session.
    """
    try:
        command = request_command(SYSTEM_PROMPT, prompt)
    except CompletionError as e:
        logger.info("Generation failed: %s", e)
        return GenerationOutcome.failure(str(e))

    logger.info("Generated command: %s", command)
    return GenerationOutcome.success(command)


@dataclass
class Session:
    """
    State of one interaction: typing a request, waiting for the command,
    then accepting or dismissing it.

    Events come in through `handle_key` and `handle_outcome`, and both
    return an `Effect` for the caller to carry out. The session itself
    does no I/O.
    """

    context: str = ""
    input_text: str = ""
    cursor: int = 0
    phase: Phase = Phase.EDITING
    command: Optional[str] = None
    error: Optional[str] = None
    accepted: bool = False
    finished: bool = False

    @property
    def prompt(self) -> str:
        """The user prompt sent along with the system instruction."""
        return self.context + PROMPT_SEPARATOR + self.input_text

    def handle_key(self, key: str, character: Optional[str] = None) -> Effect:
        if self.finished:
            return Effect.NONE

        if key in QUIT_KEYS:
            logger.debug("Quit requested while %s", self.phase.value)
            self.finished = True
            return Effect.QUIT

        if self.phase is Phase.GENERATING:
            return Effect.NONE

        if key == CONFIRM_KEY:
            return self._confirm()

        if self.phase is not Phase.EDITING:
            return Effect.NONE

        if key == BACKSPACE_KEY:
            if self.input_text:
                self.input_text = self.input_text[:-1]
                self.cursor = len(self.input_text)
        elif character and character.isprintable():
            self.input_text += character
            self.cursor = len(self.input_text)

        return Effect.NONE

    def _confirm(self) -> Effect:
        if self.phase is Phase.RESULT:
            self.accepted = True
            self.finished = True
            return Effect.QUIT

        if self.phase is Phase.EDITING and self.input_text:
            logger.debug("Submitting %r", self.input_text)
            self.phase = Phase.GENERATING
            return Effect.GENERATE

        return Effect.NONE

    def handle_paste(self, text: str) -> Effect:
        """Appends pasted text. Only printable characters are kept."""
        if self.finished or self.phase is not Phase.EDITING:
            return Effect.NONE

        pasted = "".join(character for character in text if character.isprintable())
        if pasted:
            self.input_text += pasted
            self.cursor = len(self.input_text)
        return Effect.NONE

    def handle_outcome(self, outcome: GenerationOutcome) -> Effect:
        if self.finished:
            logger.debug("Dropping outcome delivered after the session ended")
            return Effect.NONE

        if self.phase is not Phase.GENERATING:
            logger.debug("Dropping outcome delivered while %s", self.phase.value)
            return Effect.NONE

        if outcome.ok:
            self.command = outcome.command
            self.phase = Phase.RESULT
        else:
            self.error = outcome.error
            self.phase = Phase.ERROR

        return Effect.NONE
