import os
import stat
import tempfile
import unittest
from unittest.mock import patch

from io import StringIO
from cmd_assistant import cli
from cmd_assistant.session import Phase, Session


def _accepted_session(command: str = "ls -la") -> Session:
    return Session(phase=Phase.RESULT, command=command, accepted=True, finished=True)


@patch("cmd_assistant.cli._load_config")
@patch("cmd_assistant.cli.gather_context", return_value="PWD: /\n")
@patch("argcomplete.autocomplete")
class TestRunCli(unittest.TestCase):
    """Tests for the session driver in cli.py."""

    @patch("cmd_assistant.cli.run_session")
    @patch("sys.stdout", new_callable=StringIO)
    def test_accepted_command_goes_to_stdout(
        self, mock_stdout, mock_run_session, mock_autocomplete, mock_context, mock_load_config
    ):
        """Verify the accepted command is printed verbatim, without a newline."""
        mock_run_session.return_value = _accepted_session()

        cli.run_cli([])

        mock_run_session.assert_called_once_with("PWD: /\n")
        mock_load_config.assert_called_once()
        self.assertEqual(mock_stdout.getvalue(), "ls -la")

    @patch("cmd_assistant.cli.run_session")
    @patch("sys.stdout", new_callable=StringIO)
    def test_accepted_command_goes_to_output_file(
        self, mock_stdout, mock_run_session, mock_autocomplete, mock_context, mock_load_config
    ):
        """Verify the output file is overwritten with the command and nothing is printed."""
        mock_run_session.return_value = _accepted_session("git status")

        with tempfile.TemporaryDirectory() as tmp:
            output_path = os.path.join(tmp, "command")
            with open(output_path, "w") as f:
                f.write("a much longer previous command")

            cli.run_cli([output_path])

            with open(output_path) as f:
                self.assertEqual(f.read(), "git status")

        self.assertEqual(mock_stdout.getvalue(), "")

    @patch("cmd_assistant.cli.run_session")
    @patch("sys.stdout", new_callable=StringIO)
    def test_cancelled_session_emits_nothing(
        self, mock_stdout, mock_run_session, mock_autocomplete, mock_context, mock_load_config
    ):
        """Verify quitting before accepting leaves stdout empty and exits normally."""
        mock_run_session.return_value = Session(
            phase=Phase.RESULT, command="ls -la", finished=True
        )

        cli.run_cli([])

        self.assertEqual(mock_stdout.getvalue(), "")

    @patch("cmd_assistant.cli.run_session", side_effect=RuntimeError("no terminal"))
    @patch("sys.stderr", new_callable=StringIO)
    def test_event_loop_failure_exits_with_error(
        self, mock_stderr, mock_run_session, mock_autocomplete, mock_context, mock_load_config
    ):
        with self.assertRaises(SystemExit) as cm:
            cli.run_cli([])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("Error running program: no terminal", mock_stderr.getvalue())

    @patch("cmd_assistant.cli.run_session")
    @patch("sys.stderr", new_callable=StringIO)
    def test_write_failure_exits_with_error(
        self, mock_stderr, mock_run_session, mock_autocomplete, mock_context, mock_load_config
    ):
        mock_run_session.return_value = _accepted_session()

        with tempfile.TemporaryDirectory() as tmp:
            missing_dir_path = os.path.join(tmp, "missing", "command")
            with self.assertRaises(SystemExit) as cm:
                cli.run_cli([missing_dir_path])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("Error writing result", mock_stderr.getvalue())

    @patch("sys.stderr", new_callable=StringIO)
    def test_too_many_arguments_exits_with_error(
        self, mock_stderr, mock_autocomplete, mock_context, mock_load_config
    ):
        with self.assertRaises(SystemExit) as cm:
            cli.run_cli(["one", "two"])

        self.assertEqual(cm.exception.code, 2)
        self.assertIn("unrecognized arguments: two", mock_stderr.getvalue())


class TestEmitResult(unittest.TestCase):
    """Tests for writing the accepted command."""

    def test_output_file_permissions(self):
        with tempfile.TemporaryDirectory() as tmp:
            output_path = os.path.join(tmp, "command")
            old_umask = os.umask(0)
            try:
                cli.emit_result("ls", output_path)
            finally:
                os.umask(old_umask)

            self.assertEqual(stat.S_IMODE(os.stat(output_path).st_mode), 0o644)


class TestLoadConfig(unittest.TestCase):
    """Tests for the packaged key=value configuration."""

    def setUp(self):
        """Reset the loaded flag before each test."""
        cli._config_loaded = False
        self.addCleanup(setattr, cli, "_config_loaded", False)

    def _write_config(self, tmp: str, content: str) -> str:
        config_path = os.path.join(tmp, "config.env")
        with open(config_path, "w") as f:
            f.write(content)
        return config_path

    def test_file_values_fill_the_environment(self):
        with tempfile.TemporaryDirectory() as tmp:
            config_path = self._write_config(
                tmp, '# endpoint\nOPENAI_KEY="from-file"\nOPENAI_ENDPOINT=https://file.test\n'
            )
            with patch.dict(os.environ, {"CMD_ASSIST_CONFIG": config_path}, clear=True):
                cli._load_config()

                self.assertEqual(os.environ["OPENAI_KEY"], "from-file")
                self.assertEqual(os.environ["OPENAI_ENDPOINT"], "https://file.test")

    def test_environment_wins_over_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            config_path = self._write_config(tmp, "OPENAI_KEY=from-file\n")
            env = {"CMD_ASSIST_CONFIG": config_path, "OPENAI_KEY": "from-env"}
            with patch.dict(os.environ, env, clear=True):
                cli._load_config()

                self.assertEqual(os.environ["OPENAI_KEY"], "from-env")

    @patch("cmd_assistant.cli.load_dotenv")
    def test_loads_only_once(self, mock_load_dotenv):
        with tempfile.TemporaryDirectory() as tmp:
            config_path = self._write_config(tmp, "OPENAI_KEY=x\n")
            with patch.dict(os.environ, {"CMD_ASSIST_CONFIG": config_path}):
                cli._load_config()
                cli._load_config()

        mock_load_dotenv.assert_called_once_with(config_path, override=False)

    @patch("cmd_assistant.cli.load_dotenv")
    def test_missing_file_is_not_an_error(self, mock_load_dotenv):
        with patch.dict(os.environ, {"CMD_ASSIST_CONFIG": "/nonexistent/config.env"}):
            cli._load_config()

        mock_load_dotenv.assert_not_called()
