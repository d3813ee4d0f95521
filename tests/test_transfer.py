"""
Tests for rsync command construction and execution.
"""
import subprocess
import unittest
from pathlib import Path
from unittest import mock

from codesync.config import RemoteEndpoint
from codesync.operations.transfer import (
    EXIT_NOT_RUN,
    RsyncTransfer,
    TransferOptions,
    TransferOutcome,
    build_command,
    ssh_command,
)

ENDPOINT = RemoteEndpoint(host="myserver.com", remote_path="/var/www/app",
                          user="deploy", port=2222)


class TestBuildCommand(unittest.TestCase):

    def test_default_command(self):
        cmd = build_command(Path("/home/me/app"), ENDPOINT, TransferOptions())
        self.assertEqual(cmd, [
            "rsync", "-a", "--quiet", "--progress", "--human-readable",
            "-e", "ssh -p 2222",
            "/home/me/app/", "deploy@myserver.com:/var/www/app/",
        ])

    def test_flags(self):
        opts = TransferOptions(compress=True, delete=True, verbose=True, dry_run=True)
        cmd = build_command(Path("/src"), ENDPOINT, opts)
        for flag in ("--compress", "--delete", "--verbose", "--dry-run"):
            self.assertIn(flag, cmd)
        self.assertNotIn("--quiet", cmd)

    def test_excludes_keep_their_order(self):
        opts = TransferOptions(excludes=(".git/", "*.log", "my dir/"))
        cmd = build_command(Path("/src"), ENDPOINT, opts)
        excludes = [c for c in cmd if c.startswith("--exclude=")]
        self.assertEqual(excludes, ["--exclude=.git/", "--exclude=*.log", "--exclude=my dir/"])

    def test_key_path_is_passed_to_ssh(self):
        ep = RemoteEndpoint(host="h", remote_path="/r", key_path=Path("/keys/my key"))
        self.assertEqual(ssh_command(ep), "ssh -p 22 -i '/keys/my key'")

    def test_trailing_slashes_are_not_doubled(self):
        ep = RemoteEndpoint(host="h", remote_path="/r/", user="u")
        cmd = build_command(Path("/src/"), ep, TransferOptions())
        self.assertEqual(cmd[-2:], ["/src/", "u@h:/r/"])

    def test_remote_root_directory(self):
        ep = RemoteEndpoint(host="h", remote_path="/", user="u")
        self.assertEqual(ep.destination, "u@h:/")


class TestExecute(unittest.TestCase):

    def test_success(self):
        with mock.patch("subprocess.run",
                        return_value=subprocess.CompletedProcess([], 0)) as run:
            outcome = RsyncTransfer().execute(Path("/src"), ENDPOINT, TransferOptions())
        self.assertTrue(outcome.ok)
        self.assertEqual(run.call_args.args[0][0], "rsync")

    def test_quiet_discards_stdout_and_captures_stderr(self):
        done = subprocess.CompletedProcess([], 12, stderr="rsync error: protocol\n")
        with mock.patch("subprocess.run", return_value=done) as run:
            outcome = RsyncTransfer().execute(Path("/src"), ENDPOINT,
                                              TransferOptions(quiet=True))
        kwargs = run.call_args.kwargs
        self.assertIs(kwargs["stdout"], subprocess.DEVNULL)
        self.assertIs(kwargs["stderr"], subprocess.PIPE)
        self.assertFalse(outcome.ok)
        self.assertEqual(outcome.returncode, 12)
        self.assertIn("protocol", outcome.describe())

    def test_missing_binary_is_a_failed_outcome(self):
        with mock.patch("subprocess.run", side_effect=FileNotFoundError("rsync")):
            outcome = RsyncTransfer().execute(Path("/src"), ENDPOINT, TransferOptions())
        self.assertEqual(outcome.returncode, EXIT_NOT_RUN)
        self.assertFalse(outcome.ok)


class TestTransferOutcome(unittest.TestCase):

    def test_describe_without_stderr(self):
        self.assertEqual(TransferOutcome(255).describe(), "exit status 255")

    def test_describe_uses_last_stderr_line(self):
        out = TransferOutcome(23, "first\nsecond line\n")
        self.assertEqual(out.describe(), "exit status 23: second line")


if __name__ == "__main__":
    unittest.main()
