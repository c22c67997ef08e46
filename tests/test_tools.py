"""
Tests for external tool discovery and subprocess error handling.

subprocess and PATH lookups are mocked, so these run without poppler or zip.
"""

from __future__ import annotations

import subprocess
import unittest
from unittest import mock

import helpers_cli  # noqa: F401  (puts src/ on sys.path)

from pdf2cbz import tools
from pdf2cbz.utils import MissingDependencyError, ToolError


class FindMissingToolsTests(unittest.TestCase):
    def test_reports_only_missing_and_deduplicates(self) -> None:
        available = {"zip": "/usr/bin/zip"}
        with mock.patch.object(tools.shutil, "which", side_effect=available.get):
            missing = tools.find_missing_tools(["pdftoppm", "zip", "pdftoppm"])
        self.assertEqual(missing, ["pdftoppm"])

    def test_ensure_tools_names_every_missing_tool(self) -> None:
        with mock.patch.object(tools.shutil, "which", return_value=None):
            with self.assertRaises(MissingDependencyError) as ctx:
                tools.ensure_tools(["pdftoppm", "zip"])
        message = str(ctx.exception)
        self.assertIn("pdftoppm", message)
        self.assertIn("zip", message)
        self.assertIn("poppler", message)

    def test_ensure_tools_with_nothing_required(self) -> None:
        with mock.patch.object(tools.shutil, "which", return_value=None):
            tools.ensure_tools([])


class RunToolTests(unittest.TestCase):
    def test_success_returns_completed_process(self) -> None:
        done = subprocess.CompletedProcess(["zip"], 0, stdout="", stderr="")
        with mock.patch.object(tools.subprocess, "run", return_value=done) as run:
            result = tools.run_tool(["zip", "-q"], label="zip")
        self.assertIs(result, done)
        self.assertEqual(run.call_args.args[0], ["zip", "-q"])
        self.assertFalse(run.call_args.kwargs["check"])

    def test_nonzero_exit_raises_with_stderr(self) -> None:
        failed = subprocess.CompletedProcess(
            ["pdftoppm"], 99, stdout="", stderr="Syntax Error: Couldn't find trailer dictionary\n"
        )
        with mock.patch.object(tools.subprocess, "run", return_value=failed):
            with self.assertRaises(ToolError) as ctx:
                tools.run_tool(["pdftoppm", "x.pdf", "out"], label="pdftoppm")
        self.assertIn("status 99", str(ctx.exception))
        self.assertIn("trailer dictionary", str(ctx.exception))

    def test_launch_failure_raises_tool_error(self) -> None:
        with mock.patch.object(tools.subprocess, "run", side_effect=FileNotFoundError("zip")):
            with self.assertRaises(ToolError):
                tools.run_tool(["zip"], label="zip")

    def test_command_logged_at_debug(self) -> None:
        calls = []
        done = subprocess.CompletedProcess(["zip"], 0, stdout="", stderr="")
        with mock.patch.object(tools.subprocess, "run", return_value=done):
            tools.run_tool(["zip", "a b.cbz"], label="zip", log=lambda msg, level="info": calls.append((msg, level)))
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0][1], "debug")
        self.assertIn('"a b.cbz"', calls[0][0])


if __name__ == "__main__":
    unittest.main()
