"""
Scoped external processes for job bodies.

A job body that launches an external program owns the process handle for
the duration of run(). ExternalProcess guarantees the process is gone when
the with-block exits, whether the body returned or raised:

    1. wait for a normal exit (the body usually already waited)
    2. SIGTERM, wait TERMINATE_TIMEOUT
    3. SIGKILL, wait KILL_TIMEOUT

Usage:
    with ExternalProcess(["solver", "--input", "network.csv"], cwd=job_dir) as proc:
        out, err = proc.communicate(timeout=600)
        if proc.returncode != 0:
            raise JobFailedError(err)
"""

import logging
import subprocess
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


class ExternalProcess:
    """
    subprocess.Popen handle with a terminate-then-kill shutdown.

    Example:
        >>> with ExternalProcess(["echo", "hello"]) as proc:
        ...     out, _ = proc.communicate()
        >>> out
        'hello\\n'
    """

    # Timeouts for the shutdown sequence
    TERMINATE_TIMEOUT = 5.0   # Wait after SIGTERM before SIGKILL
    KILL_TIMEOUT = 2.0        # Wait after SIGKILL

    def __init__(
        self,
        command: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None
    ):
        """
        Args:
            command: Program and arguments
            cwd: Working directory of the process
            env: Environment of the process (inherited if None)
        """
        if not command:
            raise ValueError("command must not be empty")
        self.command = [str(c) for c in command]
        self.cwd = str(cwd) if cwd is not None else None
        self.env = env
        self._process: Optional[subprocess.Popen] = None

    def start(self) -> "ExternalProcess":
        """Spawn the process with piped stdout/stderr."""
        if self._process is not None:
            raise RuntimeError("Process already started")
        self._process = subprocess.Popen(
            self.command,
            cwd=self.cwd,
            env=self.env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
        )
        logger.info("Spawned process (pid=%d): %s", self._process.pid, " ".join(self.command))
        return self

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process is not None else None

    def is_alive(self) -> bool:
        """Check if the process is still running."""
        return self._process is not None and self._process.poll() is None

    def communicate(self, timeout: Optional[float] = None) -> Tuple[str, str]:
        """
        Wait for the process to exit and collect its output.

        Raises:
            subprocess.TimeoutExpired: If it does not exit within timeout
        """
        if self._process is None:
            raise RuntimeError("Process not started")
        out, err = self._process.communicate(timeout=timeout)
        return out or "", err or ""

    def stop(self) -> bool:
        """
        Make sure the process is terminated.

        Returns:
            True if the process is gone, False if it survived SIGKILL
        """
        if self._process is None or self._process.poll() is not None:
            return True

        pid = self._process.pid
        logger.warning("Process (pid=%d) still running, sending SIGTERM", pid)
        self._process.terminate()
        try:
            self._process.wait(timeout=self.TERMINATE_TIMEOUT)
            logger.info("Process exited after SIGTERM")
            return True
        except subprocess.TimeoutExpired:
            pass

        logger.warning("Process did not respond to SIGTERM, sending SIGKILL")
        self._process.kill()
        try:
            self._process.wait(timeout=self.KILL_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.error("Process (pid=%d) still alive after SIGKILL!", pid)
            return False

        logger.info("Process terminated after SIGKILL")
        return True

    def __enter__(self) -> "ExternalProcess":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        # Close the pipes if communicate() was never reached
        for stream in (self._process.stdout, self._process.stderr):
            if stream is not None and not stream.closed:
                stream.close()
