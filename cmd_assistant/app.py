"""Terminal front-end that feeds keystrokes to a Session and shows its view."""

import logging
from functools import partial
from typing import Callable

from textual import events, on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Static

from .session import Effect, GenerationOutcome, Session, generate
from .view import render

logger = logging.getLogger(__name__)

Generator = Callable[[str], GenerationOutcome]


class GenerationFinished(Message):
    """Posted by the generation worker once the completion call returns."""

    def __init__(self, outcome: GenerationOutcome) -> None:
        super().__init__()
        self.outcome = outcome


class CommandApp(App[Session], inherit_bindings=False):
    """
    Single-line prompt that turns a description into a shell command.

    Every keystroke goes through `Session.handle_key`. Generation runs in a
    thread worker and reports back with a `GenerationFinished` message, so the
    session is only ever touched from the event loop.
    """

    CSS = """
    #view {
        height: auto;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    # The keys the session reacts to must reach it before any default action.
    BINDINGS = [
        Binding("ctrl+c", "session_key('ctrl+c')", show=False, priority=True),
        Binding("escape", "session_key('escape')", show=False, priority=True),
        Binding("q", "session_key('q')", show=False, priority=True),
        Binding("enter", "session_key('enter')", show=False, priority=True),
        Binding("backspace", "session_key('backspace')", show=False, priority=True),
    ]

    def __init__(self, session: Session, generator: Generator = generate) -> None:
        super().__init__()
        self.session = session
        self._generator = generator

    def compose(self) -> ComposeResult:
        yield Static(render(self.session), id="view")

    def action_session_key(self, key: str) -> None:
        self._apply(self.session.handle_key(key))

    def on_key(self, event: events.Key) -> None:
        character = event.character if event.is_printable else None
        self._apply(self.session.handle_key(event.key, character))

    def on_paste(self, event: events.Paste) -> None:
        self._apply(self.session.handle_paste(event.text))

    @on(GenerationFinished)
    def handle_generation_finished(self, message: GenerationFinished) -> None:
        self._apply(self.session.handle_outcome(message.outcome))

    def _apply(self, effect: Effect) -> None:
        self.query_one("#view", Static).update(render(self.session))

        if effect is Effect.GENERATE:
            self.run_worker(
                partial(self._generate, self.session.prompt),
                name="generate",
                group="generation",
                thread=True,
            )
        elif effect is Effect.QUIT:
            self.exit(self.session)

    def _generate(self, prompt: str) -> None:
        # Runs in a worker thread.
        outcome = self._generator(prompt)
        self.post_message(GenerationFinished(outcome))


def run_session(context: str, generator: Generator = generate) -> Session:
    """
    Runs the prompt inline in the terminal until the user accepts or quits.

    Raises:
        RuntimeError: if the event loop did not exit cleanly.
    """
    app = CommandApp(Session(context=context), generator)
    app.run(inline=True)

    if app.return_code:
        raise RuntimeError(f"event loop exited with code {app.return_code}")

    logger.debug("Session finished (accepted=%s)", app.session.accepted)
    return app.session
