from rich.style import Style
from rich.text import Text

from .session import Phase, Session

INPUT_STYLE = Style(color="#FF75B7")
LOADING_STYLE = Style(color="#04B575")
ERROR_STYLE = Style(color="#FF0000")
RESULT_STYLE = Style(color="#04B575", bold=True)

PROMPT_LABEL = "What command do you need? "
CURSOR = "_"


def render(session: Session) -> Text:
    """Builds what the terminal shows for the current state of the session."""
    if session.phase is Phase.GENERATING:
        return Text.assemble(("🔄 Generating command...", LOADING_STYLE), "\n")

    if session.phase is Phase.RESULT:
        return Text.assemble(
            "Generated: ",
            (session.command or "", RESULT_STYLE),
            "\n",
            "Press Enter to use, ESC to cancel",
        )

    if session.phase is Phase.ERROR:
        return Text.assemble(
            (f"Error: {session.error}", ERROR_STYLE),
            "\n",
            "Press ESC to exit",
        )

    view = Text.assemble(PROMPT_LABEL, (session.input_text, INPUT_STYLE))
    if session.cursor == len(session.input_text):
        view.append(CURSOR, INPUT_STYLE)
    return view
