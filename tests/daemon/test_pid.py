"""Tests for the PID file."""

import os
from pathlib import Path
from unittest.mock import patch

from drone_cron.daemon.pid import PIDFile, _process_exists


class TestPIDFile:
    """Tests for PIDFile."""

    def test_create_and_read(self, tmp_path: Path):
        """Test that the current PID is written."""
        pid_file = PIDFile(tmp_path / "nested" / "drone-cron.pid")

        pid_file.create()

        assert pid_file.path.exists()
        assert pid_file.read() == os.getpid()

    def test_remove(self, tmp_path: Path):
        pid_file = PIDFile(tmp_path / "drone-cron.pid")
        pid_file.create()

        pid_file.remove()

        assert not pid_file.path.exists()

    def test_remove_missing(self, tmp_path: Path):
        """Test that removing a missing file is fine."""
        PIDFile(tmp_path / "drone-cron.pid").remove()

    def test_read_missing(self, tmp_path: Path):
        assert PIDFile(tmp_path / "drone-cron.pid").read() is None

    def test_read_garbage(self, tmp_path: Path):
        path = tmp_path / "drone-cron.pid"
        path.write_text("not-a-pid")

        assert PIDFile(path).read() is None

    def test_is_running_for_current_process(self, tmp_path: Path):
        pid_file = PIDFile(tmp_path / "drone-cron.pid")
        pid_file.create()

        assert pid_file.is_running()

    def test_is_running_without_file(self, tmp_path: Path):
        assert not PIDFile(tmp_path / "drone-cron.pid").is_running()

    def test_clear_if_stale(self, tmp_path: Path):
        """Test that a file pointing at a dead process is removed."""
        path = tmp_path / "drone-cron.pid"
        path.write_text("4242")
        pid_file = PIDFile(path)

        with patch("drone_cron.daemon.pid._process_exists", return_value=False):
            assert pid_file.clear_if_stale() is True

        assert not path.exists()

    def test_clear_if_stale_keeps_live_file(self, tmp_path: Path):
        pid_file = PIDFile(tmp_path / "drone-cron.pid")
        pid_file.create()

        assert pid_file.clear_if_stale() is False
        assert pid_file.path.exists()


class TestProcessExists:
    """Tests for _process_exists."""

    def test_current_process(self):
        assert _process_exists(os.getpid())

    def test_missing_process(self):
        with patch("os.kill", side_effect=ProcessLookupError):
            assert not _process_exists(4242)

    def test_other_users_process(self):
        """Test that a process we may not signal still counts as running."""
        with patch("os.kill", side_effect=PermissionError):
            assert _process_exists(1)
