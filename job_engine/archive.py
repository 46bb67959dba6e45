"""
Archive packaging for job result files.
"""

import logging
import uuid
import zipfile
from pathlib import Path
from typing import Iterable, Optional, Union

from core.constants import ZIP_SUFFIX

logger = logging.getLogger(__name__)


def random_archive_name() -> str:
    """Return a random, practically unique archive file name."""
    return f"{uuid.uuid4().hex[:12]}{ZIP_SUFFIX}"


def normalize_archive_name(name: Optional[str]) -> str:
    """
    Resolve the archive file name.

    A missing name gets a random one; a name without the .zip suffix gets it
    appended. The name must be a plain file name.

    Raises:
        ValueError: If the name contains path components
    """
    if not name:
        return random_archive_name()
    if Path(name).name != name or name in (".", ".."):
        raise ValueError(f"Archive name must be a plain file name: {name!r}")
    if not name.lower().endswith(ZIP_SUFFIX):
        name = f"{name}{ZIP_SUFFIX}"
    return name


def zip_files(zip_path: Union[str, Path], files: Iterable[Union[str, Path]]) -> Path:
    """
    Create a ZIP archive holding the given files under their base names.

    An existing archive at zip_path is overwritten.

    Args:
        zip_path: Destination of the archive
        files: Files to include

    Returns:
        Path of the created archive
    """
    zip_path = Path(zip_path)
    count = 0

    try:
        with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zipf:
            for file_path in files:
                file_path = Path(file_path)
                zipf.write(file_path, file_path.name)
                count += 1
    except OSError:
        # Do not leave a truncated archive behind
        zip_path.unlink(missing_ok=True)
        raise

    logger.info("Created archive %s with %d file(s)", zip_path, count)
    return zip_path
