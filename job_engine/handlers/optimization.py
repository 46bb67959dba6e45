"""
Optimization job handler.

Pretends to be a long-running optimization: waits for a while, then writes
random flows and costs to the flows.csv and costs.csv result files. It can
fail at random to show how failures end up in the error marker.
"""

import logging
import random
import time
from typing import Any, Dict, Optional, TextIO

from job_engine.handlers.base import Job, JobFailedError

logger = logging.getLogger(__name__)

FLOWS_FILE = "flows.csv"
COSTS_FILE = "costs.csv"


class OptimizationJob(Job[Any, Dict[str, Any]]):
    """
    Handler for optimization jobs.

    Input (a mapping):
        - nb_flows: Number of flow rows to write (default: 10)
        - delay_seconds: Simulated work duration (default: constructor value)
        - failure_probability: Chance of a simulated failure (default: constructor value)
    """

    def __init__(
        self,
        delay_seconds: float = 0.0,
        failure_probability: float = 0.0,
        seed: Optional[int] = None
    ):
        self.delay_seconds = delay_seconds
        self.failure_probability = failure_probability
        self._rng = random.Random(seed)
        self._input: Optional[Dict[str, Any]] = None

    def init(self, job_id: Any, job_input: Dict[str, Any]) -> None:
        if not isinstance(job_input, dict):
            raise ValueError("input is wrong or missing.")

        nb_flows = job_input.get("nb_flows", 10)
        if not isinstance(nb_flows, int) or nb_flows < 0:
            raise ValueError(f"nb_flows must be a non-negative integer, got {nb_flows!r}")

        self._input = dict(job_input)
        self._input["nb_flows"] = nb_flows

    def run(self, job_id: Any, result_writers: Dict[str, TextIO]) -> None:
        if self._input is None:
            raise JobFailedError("init() was not called.")

        failure_probability = self._input.get("failure_probability", self.failure_probability)
        if self._rng.random() < failure_probability:
            raise JobFailedError("something went wrong.")

        missing = [n for n in (FLOWS_FILE, COSTS_FILE) if n not in result_writers]
        if missing:
            raise JobFailedError(f"Missing result writers: {missing}")

        # Simulate a long running process
        delay = self._input.get("delay_seconds", self.delay_seconds)
        if delay:
            time.sleep(delay)

        flows = result_writers[FLOWS_FILE]
        flows.write("ori,des,flow\n")
        for _ in range(self._input["nb_flows"]):
            ori = self._rng.randrange(100)
            des = self._rng.randrange(100)
            flows.write(f"{ori},{des},{self._rng.random()}\n")

        costs = result_writers[COSTS_FILE]
        costs.write("type,cost\n")
        costs.write(f"transportation,{self._rng.random()}\n")
        costs.write(f"handling,{self._rng.random()}\n")

        logger.info("Optimization job %s wrote %d flows", str(job_id)[:8], self._input["nb_flows"])
