"""
Path scheme and path-scoped filesystem operations for job directories.

Layout of a job directory (<root>/<directory name of id>/):

    ___beg___.txt   begin timestamp, "YYYY-MM-DD HH:MM:SS"
    ___end___.txt   end timestamp, absent while the job runs
    ___err___.txt   accumulated error text, absent if no error occurred
    <result-name>   result files of the session
    <name>.zip      archives created on demand

JobPaths is the only place that knows this layout. The directory tree is the
single source of truth; nothing is cached in memory.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Generic, Iterable, List, Optional, Set, Tuple, Union

from core.constants import BEGIN_MARKER, END_MARKER, ERROR_MARKER, TIME_FORMAT
from job_engine.archive import normalize_archive_name, zip_files
from job_engine.errors import (
    AggregateJobError,
    DuplicateIdError,
    JobEngineError,
    JobNotCompletedError,
    JobNotFoundError,
    StatusError,
)
from job_engine.ids import IdAllocator, IdT

logger = logging.getLogger(__name__)


def format_time(when: datetime) -> str:
    """Format a marker timestamp (locale independent)."""
    return when.strftime(TIME_FORMAT)


def parse_time(path: Path) -> datetime:
    """
    Read and parse the timestamp stored in a marker file.

    Raises:
        StatusError: If the file is missing or its content is not a timestamp
    """
    if not path.exists():
        raise StatusError(f"Cannot find time-file: {path.name}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StatusError(f"Failed to read {path.name}: {e}") from e
    try:
        return datetime.strptime(text.strip(), TIME_FORMAT)
    except ValueError as e:
        raise StatusError(f"Failed to parse '{text}' as time in {path.name}") from e


class JobPaths(Generic[IdT]):
    """
    Maps job ids to paths under a root directory.

    Example:
        >>> paths = JobPaths("/data/jobs", SequentialIdAllocator())
        >>> paths.dir_of("3")
        PosixPath('/data/jobs/3')
        >>> paths.end_marker_of("3")
        PosixPath('/data/jobs/3/___end___.txt')
    """

    def __init__(self, root: Union[str, Path], allocator: IdAllocator[IdT]):
        self.root = Path(root)
        self.allocator = allocator

    # =========================================================================
    # Paths
    # =========================================================================

    def dir_of(self, job_id: IdT) -> Path:
        return self.root / self.allocator.to_directory_name(job_id)

    def begin_marker_of(self, job_id: IdT) -> Path:
        return self.dir_of(job_id) / BEGIN_MARKER

    def end_marker_of(self, job_id: IdT) -> Path:
        return self.dir_of(job_id) / END_MARKER

    def error_marker_of(self, job_id: IdT) -> Path:
        return self.dir_of(job_id) / ERROR_MARKER

    def result_file_of(self, job_id: IdT, name: str) -> Path:
        """
        Path of a file inside the job directory.

        Raises:
            ValueError: If name is not a plain file name
        """
        if not name or Path(name).name != name or name in (".", ".."):
            raise ValueError(f"File name must be a plain file name: {name!r}")
        return self.dir_of(job_id) / name

    # =========================================================================
    # Ids
    # =========================================================================

    def new_id(self) -> IdT:
        """Allocate an id that does not collide with any existing job directory."""
        return self.allocator.new_id_in(self.root)

    def exists(self, job_id: IdT) -> bool:
        return self.dir_of(job_id).is_dir()

    def _job_dirs(self) -> List[Path]:
        if not self.root.is_dir():
            raise JobEngineError(f"Root directory does not exist: {self.root}")
        return [p for p in self.root.iterdir() if p.is_dir()]

    def count_jobs(self) -> int:
        return len(self._job_dirs())

    def list_ids(self) -> Set[IdT]:
        """
        Parse the ids of all job directories.

        Raises:
            IdParseError: If any directory name is not a valid id
        """
        return {self.allocator.parse_id(p.name) for p in self._job_dirs()}

    # =========================================================================
    # Directories
    # =========================================================================

    def create_if_missing(self, job_id: IdT) -> Path:
        """Create the job directory; no-op if it already exists."""
        job_dir = self.dir_of(job_id)
        job_dir.mkdir(parents=True, exist_ok=True)
        return job_dir

    def reserve(self, job_id: IdT) -> Path:
        """
        Atomically create the job directory.

        Raises:
            DuplicateIdError: If the directory already exists
        """
        job_dir = self.dir_of(job_id)
        self.root.mkdir(parents=True, exist_ok=True)
        try:
            job_dir.mkdir()
        except FileExistsError as e:
            raise DuplicateIdError(job_id) from e
        return job_dir

    def delete(self, job_id: IdT) -> None:
        """
        Delete a completed job directory.

        Sub-directories are removed first, then the job directory itself.

        Raises:
            JobNotFoundError: If the job directory does not exist
            JobNotCompletedError: If the end marker is missing (nothing is removed)
            AggregateJobError: If any part of the removal failed
        """
        job_dir = self.dir_of(job_id)
        if not job_dir.is_dir():
            raise JobNotFoundError(job_id)
        if not self.end_marker_of(job_id).exists():
            raise JobNotCompletedError(job_id)

        failures: List[Tuple[str, BaseException]] = []
        for sub_dir in sorted(p for p in job_dir.iterdir() if p.is_dir()):
            try:
                shutil.rmtree(sub_dir)
            except OSError as e:
                failures.append((sub_dir.name, e))

        try:
            shutil.rmtree(job_dir)
        except OSError as e:
            failures.append((job_dir.name, e))

        if failures:
            raise AggregateJobError(f"Failed to delete job '{job_id}'", failures)
        logger.info("Deleted job directory %s", job_dir)

    def remove_unchecked(self, job_id: IdT) -> None:
        """Remove a job directory without the completion check (submission rollback)."""
        shutil.rmtree(self.dir_of(job_id))

    # =========================================================================
    # Sentinel Files
    # =========================================================================

    def write_begin(self, job_id: IdT, when: Optional[datetime] = None) -> None:
        self.begin_marker_of(job_id).write_text(
            format_time(when or datetime.now()), encoding="utf-8"
        )

    def write_end(self, job_id: IdT, when: Optional[datetime] = None) -> None:
        self.end_marker_of(job_id).write_text(
            format_time(when or datetime.now()), encoding="utf-8"
        )

    def append_error(self, job_id: IdT, text: str) -> None:
        """Append a block of error text to the error marker."""
        if not text.endswith("\n"):
            text += "\n"
        with open(self.error_marker_of(job_id), "a", encoding="utf-8") as f:
            f.write(text)

    # =========================================================================
    # Archives
    # =========================================================================

    def zip(
        self,
        job_id: IdT,
        files: Iterable[Union[str, Path]],
        name: Optional[str] = None
    ) -> Path:
        """
        Archive files into a ZIP inside the job directory.

        Args:
            job_id: Job owning the archive
            files: Files to include under their base names
            name: Archive file name (random if omitted)

        Returns:
            Path of the archive
        """
        job_dir = self.dir_of(job_id)
        if not job_dir.is_dir():
            raise JobNotFoundError(job_id)
        return zip_files(job_dir / normalize_archive_name(name), files)
