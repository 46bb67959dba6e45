"""
External process job handler.

Runs a command in a scoped ExternalProcess and stores its stdout in a result
file. A non-zero exit code fails the job with the command's stderr.
"""

import logging
from typing import Any, Dict, Optional, TextIO

from job_engine.handlers.base import Job, JobFailedError
from job_engine.process_runner import ExternalProcess

logger = logging.getLogger(__name__)


class ProcessJob(Job[Any, Dict[str, Any]]):
    """
    Handler for jobs that run an external program.

    Input (a mapping):
        - command: Program and arguments (required, non-empty list)
        - cwd: Working directory (optional)
        - timeout: Seconds before the process is killed (optional)

    Example:
        >>> session = JobSession(root, ["stdout.txt"])
        >>> session.submit_get_id(ProcessJob(), {"command": ["echo", "hi"]})
    """

    def __init__(self, output_name: str = "stdout.txt"):
        self.output_name = output_name
        self._command = None
        self._cwd: Optional[str] = None
        self._timeout: Optional[float] = None

    def init(self, job_id: Any, job_input: Dict[str, Any]) -> None:
        if not isinstance(job_input, dict):
            raise ValueError("input is wrong or missing.")

        command = job_input.get("command")
        if not command or not isinstance(command, (list, tuple)):
            raise ValueError("command required in job input")

        self._command = [str(c) for c in command]
        self._cwd = job_input.get("cwd")
        self._timeout = job_input.get("timeout")

    def run(self, job_id: Any, result_writers: Dict[str, TextIO]) -> int:
        if self._command is None:
            raise JobFailedError("init() was not called.")
        if self.output_name not in result_writers:
            raise JobFailedError(f"Result '{self.output_name}' is not configured for this session")

        with ExternalProcess(self._command, cwd=self._cwd) as proc:
            out, err = proc.communicate(timeout=self._timeout)

        result_writers[self.output_name].write(out)

        if proc.returncode != 0:
            raise JobFailedError(
                f"Command exited with code {proc.returncode}: {err.strip()}"
            )

        logger.info("Process job %s exited with code 0", str(job_id)[:8])
        return proc.returncode
