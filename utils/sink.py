"""
Output sink for exported data.

FileSink is an append-only byte stream backed by a local file. The file is
created (or truncated) on open; parent directories are created as needed.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class FileSink:
    """Append-only output file."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._file: Optional[BinaryIO] = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        """Create the output file.

        Raises:
            OSError: If the file cannot be created
        """
        if self._file is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "wb")
        logger.info("Opening export output: %s", str(self.path))

    def write(self, data: bytes) -> None:
        """Append bytes and flush them to the file.

        Raises:
            OSError: If the write fails
        """
        if self._file is None:
            raise OSError(f"sink is not open: {self.path}")
        self._file.write(data)
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None
