import difflib
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

from .base import Logger
from .errors import PersistError


@dataclass(frozen=True)
class PersistResult:
    changed: bool
    diff: str = ""


class ConfigStore:
    """Хранит nginx.conf на диске и пишет его только при изменении содержимого."""

    def __init__(self, path: str):
        self.path = path
        self.logger = Logger.get_logger("config_store")

    def read(self) -> Optional[bytes]:
        """Текущее содержимое файла или None, если файла ещё нет."""
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistError(f"unable to read {self.path}: {e}") from e

    def persist(self, candidate: bytes) -> PersistResult:
        existing = self.read()
        if existing is None:
            self.logger.info(f"Creating {self.path} for the first time")
            self._write(candidate)
            return PersistResult(changed=True)

        if existing == candidate:
            self.logger.info("Configuration has not changed")
            return PersistResult(changed=False)

        diff_output = diff(existing, candidate, self.path)
        self.logger.info(f"Updating nginx config:\n{diff_output}")
        self._write(candidate)
        return PersistResult(changed=True, diff=diff_output)

    def _write(self, contents: bytes):
        # Full overwrite through a sibling temp file so a failed write never
        # truncates the previous artifact.
        directory = os.path.dirname(self.path) or "."
        tmp_path = ""
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".nginx-conf-", dir=directory)
            with os.fdopen(fd, "wb") as f:
                f.write(contents)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.path)
        except OSError as e:
            self.logger.error(f"Unable to write nginx configuration: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise PersistError(f"unable to write {self.path}: {e}") from e


def diff(existing: bytes, updated: bytes, name: str = "nginx.conf") -> str:
    """Unified diff двух версий конфигурации."""
    old_lines = existing.decode("utf-8", errors="replace").splitlines(keepends=True)
    new_lines = updated.decode("utf-8", errors="replace").splitlines(keepends=True)
    return "".join(difflib.unified_diff(old_lines, new_lines, fromfile=f"{name}.old", tofile=name))
