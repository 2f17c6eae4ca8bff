import os
import tempfile
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class LocalFileBackend:
    """Durable copy of the inventory on local disk. Writes replace the file atomically."""

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def load(self) -> Optional[bytes]:
        if not self.exists():
            return None
        with open(self.path, "rb") as f:
            return f.read()

    def save(self, data: bytes) -> None:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".inventory-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
