"""
All-or-nothing set of result writers for a job directory.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, TextIO, Union

from job_engine.errors import WriterOpenError

logger = logging.getLogger(__name__)


class ResultWriters:
    """
    Named text streams opened inside a job directory.

    Opening is all-or-nothing: if one stream fails to open, every stream
    opened so far is closed and WriterOpenError is raised. Each writer is
    closed exactly once, by close() or on leaving the with-block.

    Example:
        >>> with ResultWriters.open(job_dir, ["flows.csv", "costs.csv"]) as rw:
        ...     rw.writers["flows.csv"].write("ori,des,flow\\n")
    """

    def __init__(self, writers: Dict[str, TextIO]):
        self.writers = writers
        self._closed = False

    @classmethod
    def open(cls, job_dir: Union[str, Path], names: Iterable[str]) -> "ResultWriters":
        """
        Open one writer per name inside job_dir.

        Raises:
            WriterOpenError: If any writer fails to open (none is left open)
        """
        job_dir = Path(job_dir)
        writers: Dict[str, TextIO] = {}
        try:
            for name in sorted(set(names)):
                writers[name] = open(job_dir / name, "w", encoding="utf-8", newline="")
        except (OSError, ValueError) as e:
            for writer in writers.values():
                try:
                    writer.close()
                except OSError as close_error:
                    logger.warning("Failed to close writer %s: %s", writer.name, close_error)
            raise WriterOpenError(
                f"Failed to open result writers in {job_dir}: {type(e).__name__}: {e}"
            ) from e

        return cls(writers)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Close every writer once. Later calls are no-ops.

        Raises:
            OSError: The first close failure, after all writers were attempted
        """
        if self._closed:
            return
        self._closed = True

        first_error = None
        for name, writer in self.writers.items():
            try:
                writer.close()
            except OSError as e:
                logger.warning("Failed to close result writer %s: %s", name, e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def __enter__(self) -> "ResultWriters":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self.writers)
