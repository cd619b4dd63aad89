"""Persist synthesized files and pack the output tree."""

import logging
import tarfile
from collections.abc import Iterable
from pathlib import Path

from .types import SynthesizedFile

logger = logging.getLogger(__name__)


def write(files: Iterable[SynthesizedFile], root: Path) -> list[Path]:
    """Write files below root, creating directories and overwriting files."""
    written: list[Path] = []
    for synthesized in files:
        path = root.joinpath(synthesized.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(synthesized.text, encoding="utf-8")
        logger.debug("Wrote %s", path)
        written.append(path)
    return written


def archive_path(root: Path) -> Path:
    """Location of the archive for an output root: a sibling <root>.tar.gz."""
    return root.parent / f"{root.name}.tar.gz"


def archive(root: Path) -> Path:
    """Pack the tree under root into <root>.tar.gz, entries relative to root."""
    root = root.resolve()
    target = archive_path(root)
    with tarfile.open(target, "w:gz") as tar:
        for path in sorted(root.rglob("*")):
            tar.add(path, arcname=path.relative_to(root).as_posix(), recursive=False)
    logger.info("Generated archive %s", target)
    return target
