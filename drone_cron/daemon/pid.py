"""PID file so `run status` and `run stop` can find the scheduler process."""

import os
from pathlib import Path
from typing import Optional


class PIDFile:
    """Track the running scheduler process through a PID file.

    Example:
        pid_file = PIDFile(config.pid_file)
        if pid_file.is_running():
            print(f"already running as {pid_file.read()}")
        else:
            pid_file.create()
    """

    def __init__(self, path: Path):
        self.path = path

    def create(self) -> None:
        """Write the current process ID, creating parent directories."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(os.getpid()))

    def remove(self) -> None:
        """Delete the file; a missing file is fine."""
        self.path.unlink(missing_ok=True)

    def read(self) -> Optional[int]:
        """Return the recorded PID, or None if absent or unreadable."""
        try:
            return int(self.path.read_text().strip())
        except (ValueError, OSError):
            return None

    def is_running(self) -> bool:
        """Whether the recorded PID belongs to a live process."""
        pid = self.read()
        if pid is None:
            return False
        return _process_exists(pid)

    def clear_if_stale(self) -> bool:
        """Remove the file if its process is gone.

        Returns:
            True if a stale file was removed
        """
        pid = self.read()
        if pid is None or _process_exists(pid):
            return False
        self.remove()
        return True


def _process_exists(pid: int) -> bool:
    try:
        # Signal 0 only checks that the process exists
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    except OSError:
        return False
    return True
