"""
Job inputs made of files.

FilesInput wraps either paths on the local filesystem or uploaded files
(objects with a ``filename`` and a binary ``file``, e.g. FastAPI's
UploadFile) behind one interface, so that a job's init() can copy its input
files into the job directory regardless of where they came from.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from job_engine.errors import AggregateJobError

logger = logging.getLogger(__name__)


class FilesInput:
    """
    Collection of input files, from the filesystem or from a web form.

    Example:
        >>> files = FilesInput.from_paths(["/tmp/network.csv", "/tmp/costs.csv"])
        >>> files.validate(["network.csv", "costs.csv"])
        >>> files.copy_to_dir(session.get_job_dir(job_id))
    """

    def __init__(
        self,
        paths: Optional[Sequence[Union[str, Path]]] = None,
        uploads: Optional[Sequence[Any]] = None
    ):
        if (paths is None) == (uploads is None):
            raise ValueError("Exactly one of paths or uploads must be given")
        self.paths = [Path(p) for p in paths] if paths is not None else None
        self.uploads = list(uploads) if uploads is not None else None

    @classmethod
    def from_paths(cls, paths: Iterable[Union[str, Path]]) -> "FilesInput":
        return cls(paths=list(paths))

    @classmethod
    def from_uploads(cls, uploads: Optional[Iterable[Any]]) -> "FilesInput":
        return cls(uploads=list(uploads or []))

    @property
    def is_upload(self) -> bool:
        return self.uploads is not None

    @property
    def count(self) -> int:
        return len(self.uploads) if self.is_upload else len(self.paths)

    def __len__(self) -> int:
        return self.count

    def filename(self, index: int) -> str:
        """Name of the file at the given index."""
        if self.is_upload:
            return self.uploads[index].filename
        return self.paths[index].name

    def filenames(self) -> List[str]:
        return [self.filename(i) for i in range(self.count)]

    def validate(self, expected_names: Sequence[str]) -> "FilesInput":
        """
        Check that exactly the expected files are provided.

        Returns:
            self, for chaining

        Raises:
            ValueError: If the count differs or a file is unexpected
        """
        expected = ", ".join(expected_names)
        if self.count != len(expected_names):
            raise ValueError(
                f"{self.count} files are provided. However, {len(expected_names)} "
                f"input files are expected: {expected}."
            )
        for name in self.filenames():
            if name not in expected_names:
                raise ValueError(
                    f"Unexpected file '{name}': {len(expected_names)} input files "
                    f"are expected: {expected}."
                )
        return self

    def copy_to_dir(self, target_dir: Union[str, Path]) -> None:
        """Copy all files into target_dir under their own names."""
        self.copy_to_dir_with_names(target_dir, self.filenames())

    def copy_to_dir_with_names(self, target_dir: Union[str, Path], names: Sequence[str]) -> None:
        """
        Copy all files into target_dir, saving the i-th file as names[i].

        Raises:
            ValueError: If fewer names than files are given
            OSError: If a copy fails
        """
        names = list(names)
        if len(names) < self.count:
            raise ValueError(f"{len(names)} names given for {self.count} files")

        target_dir = Path(target_dir)
        for index, name in enumerate(names[:self.count]):
            target = target_dir / name
            if self.is_upload:
                upload = self.uploads[index]
                upload.file.seek(0)
                with open(target, "wb") as f:
                    shutil.copyfileobj(upload.file, f)
            else:
                shutil.copyfile(self.paths[index], target)
            logger.debug("Copied input file %s to %s", self.filename(index), target)

    def delete_from_dir(self, target_dir: Union[str, Path]) -> None:
        """
        Delete the copies of the files from target_dir, attempting all of them.

        Raises:
            AggregateJobError: With every failed deletion, if any
        """
        target_dir = Path(target_dir)
        failures: List[Tuple[str, BaseException]] = []
        for name in self.filenames():
            try:
                (target_dir / name).unlink()
            except OSError as e:
                failures.append((name, e))
        if failures:
            raise AggregateJobError(f"Failed to delete input files from {target_dir}", failures)
