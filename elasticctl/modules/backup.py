"""Backup of the persistent data directories."""
import logging
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from ..errors import PreconditionFailed
from ..utils import human_size

logger = logging.getLogger("elasticctl.backup")


def backup_data(
    project_dir: Path,
    data_dir: str = "data",
    prefix: str = "elastic-backup",
    now: Optional[datetime] = None,
) -> Tuple[Path, int]:
    """Archive ``<project_dir>/<data_dir>`` into a timestamped tar.gz.

    Args:
        project_dir: Directory holding the data directory; the archive is written here
        data_dir: Name of the data directory
        prefix: Archive name prefix
        now: Timestamp to name the archive with

    Returns:
        Tuple of (archive path, archive size in bytes)

    Raises:
        PreconditionFailed: If the data directory does not exist
    """
    project_dir = Path(project_dir)
    source = project_dir / data_dir
    if not source.is_dir():
        raise PreconditionFailed(f"No data directory found at {source}")

    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    archive = project_dir / f"{prefix}-{stamp}.tar.gz"
    logger.info("Creating backup of all data: %s", archive.name)

    try:
        with tarfile.open(archive, "w:gz") as tar:
            tar.add(source, arcname=data_dir)
    except (OSError, tarfile.TarError):
        archive.unlink(missing_ok=True)
        raise

    size = archive.stat().st_size
    logger.info("✅ Backup created: %s (%s)", archive, human_size(size))
    return archive, size
