from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from core.command_runner import CommandResult, RecordedCommand, RecordingCommandRunner
from autotools.errors import PreflightReason, PreflightUnavailable
from autotools.preflight import PROBE_SCRIPT, ShellCapabilityCheck, escape_probe_path


def _result(entry: RecordedCommand, returncode: int, stdout: str = "") -> CommandResult:
    return CommandResult(command=entry.command, returncode=returncode, stdout=stdout, stderr="")


class ShellCapabilityCheckTests(unittest.TestCase):
    def test_probe_command_on_posix(self) -> None:
        runner = RecordingCommandRunner()
        ShellCapabilityCheck(runner, environ={}, platform="linux")()
        self.assertEqual(runner.commands[0].command, ["sh", "-c", "echo test; true"])

    def test_missing_shell(self) -> None:
        def respond(entry: RecordedCommand) -> int:
            raise FileNotFoundError(2, "No such file or directory", "sh")

        check = ShellCapabilityCheck(RecordingCommandRunner(respond), environ={}, platform="linux")
        with self.assertRaises(PreflightUnavailable) as ctx:
            check()
        self.assertEqual(ctx.exception.reason, PreflightReason.MISSING)
        self.assertEqual(str(ctx.exception), "`sh` is required to run `configure`")

    def test_broken_shell(self) -> None:
        runner = RecordingCommandRunner(lambda entry: _result(entry, 2, "test\n"))
        with self.assertRaises(PreflightUnavailable) as ctx:
            ShellCapabilityCheck(runner, environ={}, platform="linux")()
        self.assertEqual(ctx.exception.reason, PreflightReason.BROKEN)
        self.assertEqual(str(ctx.exception), "`sh` is not standard or is otherwise broken")

    def test_windows_probe_runs_script_in_out_dir(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            runner = RecordingCommandRunner()
            ShellCapabilityCheck(runner, environ={"OUT_DIR": tmp}, platform="win32")()
            script = Path(tmp) / "test.sh"
            self.assertEqual(script.read_text(), PROBE_SCRIPT)
            self.assertEqual(runner.commands[0].command[2], f"echo test; {escape_probe_path(str(script))}")

    def test_windows_shell_without_shebang_support(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            runner = RecordingCommandRunner(lambda entry: _result(entry, 126, "test\n"))
            with self.assertRaises(PreflightUnavailable) as ctx:
                ShellCapabilityCheck(runner, environ={"OUT_DIR": tmp}, platform="win32")()
        self.assertEqual(ctx.exception.reason, PreflightReason.NO_SHEBANG)
        self.assertEqual(str(ctx.exception), "`sh` does not parse shebangs")

    def test_windows_shell_that_never_echoes_is_broken(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            runner = RecordingCommandRunner(lambda entry: _result(entry, 1))
            with self.assertRaises(PreflightUnavailable) as ctx:
                ShellCapabilityCheck(runner, environ={"OUT_DIR": tmp}, platform="win32")()
        self.assertEqual(ctx.exception.reason, PreflightReason.BROKEN)


class ProbePathEscapingTests(unittest.TestCase):
    def test_backslashes_are_escaped_twice(self) -> None:
        self.assertEqual(escape_probe_path(r"C:\out\test.sh"), r"C:\\\\out\\\\test.sh")

    def test_plain_paths_are_unchanged(self) -> None:
        self.assertEqual(escape_probe_path("/tmp/out/test.sh"), "/tmp/out/test.sh")

    def test_non_ascii_is_escaped(self) -> None:
        self.assertEqual(escape_probe_path("é"), "\\\\u{e9}")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
