"""Infrastructure layer: writes decrypted files to disk.
"""

from __future__ import annotations

import logging
from pathlib import Path

from securevault.common.models import FALLBACK_FILENAME

logger = logging.getLogger(__name__)


class DirectorySaver:
    """Saves delivered files into a directory without overwriting anything."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self.saved: list[Path] = []

    @staticmethod
    def safe_name(filename: str) -> str:
        """Drop any directory components a sender may have put in the name."""
        name = Path(filename.replace("\\", "/")).name
        if name in ("", ".", ".."):
            return FALLBACK_FILENAME
        return name

    def _free_path(self, name: str) -> Path:
        candidate = self.directory / name
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{stem} ({counter}){suffix}"
            counter += 1
        return candidate

    def __call__(self, filename: str, data: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self._free_path(self.safe_name(filename))
        with target.open("xb") as f:
            f.write(data)
        self.saved.append(target)
        logger.info("Saved %s", target)
        return target
