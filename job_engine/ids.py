"""
Job id allocation.

An IdAllocator converts between job ids and job directory names and produces
fresh ids that do not collide with existing ones.

Built-in allocators:
- SequentialIdAllocator: decimal strings "0", "1", "2", ...
- UuidIdAllocator: random 128-bit uuid.UUID values
"""

import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, Hashable, Set, TypeVar, Union

from core.constants import ID_RETRY_EXTRA, ID_TYPE_STRING, ID_TYPE_UUID
from job_engine.errors import ExhaustedError, IdParseError, JobEngineError

logger = logging.getLogger(__name__)

IdT = TypeVar("IdT", bound=Hashable)


class IdAllocator(ABC, Generic[IdT]):
    """
    Abstract base class for job id allocators.

    Subclasses define how ids map to directory names and how new ids are
    generated. new_id() must try a bounded number of candidates
    (len(existing_ids) + ID_RETRY_EXTRA) and raise ExhaustedError when none
    is free.
    """

    @abstractmethod
    def new_id(self, existing_ids: Set[IdT]) -> IdT:
        """
        Create a new id that is not in existing_ids.

        Raises:
            ExhaustedError: If no free id is found within the retry budget
        """

    @abstractmethod
    def parse_id(self, directory_name: str) -> IdT:
        """
        Parse the id from the name of a job directory.

        Raises:
            IdParseError: If the name is not a valid id
        """

    @abstractmethod
    def to_directory_name(self, job_id: IdT) -> str:
        """Return the directory name of the job with the given id."""

    def retry_budget(self, existing_ids: Set[IdT]) -> int:
        return len(existing_ids) + ID_RETRY_EXTRA

    def list_existing_ids(self, root_directory: Union[str, Path]) -> Set[IdT]:
        """
        Parse the names of all immediate sub-directories of root_directory.

        A name that fails to parse fails the whole listing.
        """
        root = Path(root_directory)
        if not root.is_dir():
            raise JobEngineError(f"Root directory does not exist: {root}")
        return {self.parse_id(p.name) for p in root.iterdir() if p.is_dir()}

    def new_id_in(self, root_directory: Union[str, Path]) -> IdT:
        """Create a new id that does not collide with any job under root_directory."""
        return self.new_id(self.list_existing_ids(root_directory))


class SequentialIdAllocator(IdAllocator[str]):
    """
    Allocates the smallest free decimal string id ("0", "1", ...).

    The id is its own directory name.
    """

    def new_id(self, existing_ids: Set[str]) -> str:
        for i in range(self.retry_budget(existing_ids)):
            candidate = str(i)
            if candidate not in existing_ids:
                return candidate
        raise ExhaustedError(
            f"No free sequential id among {self.retry_budget(existing_ids)} candidates"
        )

    def parse_id(self, directory_name: str) -> str:
        if not directory_name:
            raise IdParseError(directory_name, "empty name")
        return directory_name

    def to_directory_name(self, job_id: str) -> str:
        name = str(job_id)
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid job id for a directory name: {job_id!r}")
        return name


class UuidIdAllocator(IdAllocator[uuid.UUID]):
    """Allocates random uuid4 ids; the directory name is the canonical uuid string."""

    def new_id(self, existing_ids: Set[uuid.UUID]) -> uuid.UUID:
        for _ in range(self.retry_budget(existing_ids)):
            candidate = uuid.uuid4()
            if candidate not in existing_ids:
                return candidate
        # Practically unreachable with uuid4
        raise ExhaustedError(
            f"No free uuid among {self.retry_budget(existing_ids)} candidates"
        )

    def parse_id(self, directory_name: str) -> uuid.UUID:
        try:
            return uuid.UUID(directory_name)
        except (ValueError, TypeError) as e:
            raise IdParseError(directory_name, str(e)) from e

    def to_directory_name(self, job_id: uuid.UUID) -> str:
        if not isinstance(job_id, uuid.UUID):
            job_id = self.parse_id(str(job_id))
        return str(job_id)


ALLOCATORS = {
    ID_TYPE_STRING: SequentialIdAllocator,
    ID_TYPE_UUID: UuidIdAllocator,
}


def get_allocator(id_type: str) -> IdAllocator:
    """
    Get an allocator instance for the given id type name.

    Raises:
        ValueError: If id_type is not registered
    """
    allocator_cls = ALLOCATORS.get(id_type)
    if allocator_cls is None:
        available = ", ".join(ALLOCATORS.keys())
        raise ValueError(f"Unknown id type: {id_type}. Available: {available}")
    return allocator_cls()
