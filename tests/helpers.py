"""
Small job implementations shared by the tests.
"""

import threading
from typing import Dict, TextIO

from job_engine.handlers.base import Job, JobFailedError

RESULT_NAMES = ["a.txt", "b.txt"]


class EchoJob(Job):
    """Writes its input text to every result writer."""

    def __init__(self):
        self.text = None
        self.run_calls = 0

    def init(self, job_id, job_input):
        if job_input is None:
            raise ValueError("input is wrong or missing.")
        self.text = job_input

    def run(self, job_id, result_writers: Dict[str, TextIO]):
        self.run_calls += 1
        for name, writer in result_writers.items():
            writer.write(f"{name}:{self.text}\n")


class FailingInitJob(EchoJob):
    def init(self, job_id, job_input):
        raise ValueError("bad input")


class FailingRunJob(EchoJob):
    def run(self, job_id, result_writers):
        self.run_calls += 1
        raise JobFailedError("something went wrong.")


class BlockingJob(EchoJob):
    """Runs until release() is called."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self._release = threading.Event()

    def release(self):
        self._release.set()

    def run(self, job_id, result_writers):
        self.started.set()
        self._release.wait(timeout=10)
        super().run(job_id, result_writers)
