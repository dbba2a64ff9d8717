import subprocess
from typing import List, Optional

from .base import Logger
from .errors import SpawnError, ValidationError


class ConfigValidator:
    """Проверка конфигурации встроенным режимом nginx -t."""

    def __init__(self, binary_location: str, timeout: Optional[float] = None):
        self.binary_location = binary_location
        self.timeout = timeout
        self.logger = Logger.get_logger("nginx")

    def check(self, path: str):
        cmd = [self.binary_location, "-t", "-c", path]
        cmd_line = " ".join(cmd)
        try:
            result = self._run(cmd)
        except (OSError, subprocess.SubprocessError) as e:
            raise ValidationError(f"Config check failed: unable to run {cmd_line}: {e}") from e

        output = result.stdout or ""
        if result.returncode != 0:
            raise ValidationError(
                f"Config check failed: {cmd_line} exited with status {result.returncode}: {output}",
                output=output,
            )
        self.logger.debug(f"Config check passed for {path}")

    def version(self) -> str:
        """Логирует вывод nginx -v и возвращает его."""
        cmd = [self.binary_location, "-v"]
        try:
            result = self._run(cmd)
        except (OSError, subprocess.SubprocessError) as e:
            raise SpawnError(f"unable to run {self.binary_location}: {e}") from e

        output = (result.stdout or "").strip()
        for line in output.splitlines():
            self.logger.info(line)
        if result.returncode != 0:
            raise SpawnError(f"{' '.join(cmd)} exited with status {result.returncode}: {output}")
        return output

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            encoding="utf-8",
            errors="replace",
            timeout=self.timeout,
        )
