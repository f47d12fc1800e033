"""Process liveness checks and termination for session owners."""

import logging

import psutil

logger = logging.getLogger(__name__)


class ProcessOracle:
    """
    Answers "is this PID running?" and delivers kill signals.

    A dead PID that the OS has recycled for an unrelated process reads as
    alive. Nothing here tries to tell the two apart.
    """

    def is_alive(self, pid):
        """Return True if a process with the given PID exists."""
        if pid is None or pid <= 0:
            return False
        try:
            return psutil.pid_exists(pid)
        except (OverflowError, ValueError):
            # Outside the OS PID range, so no such process
            return False

    def terminate(self, pid):
        """
        Send SIGKILL to the process and return without waiting for it to exit.

        Returns True if the signal was delivered.
        """
        try:
            psutil.Process(pid).kill()
            return True
        except psutil.NoSuchProcess:
            logger.warning(f"process {pid} exited before it could be killed")
        except psutil.AccessDenied:
            logger.error(f"not permitted to kill process {pid}")
        return False
