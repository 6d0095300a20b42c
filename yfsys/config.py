"""Client configuration.

Settings come from keyword arguments or, through :meth:`ClientConfig.from_env`,
from ``YF_*`` environment variables and an optional ``.env`` file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

API_URL = "https://query1.finance.yahoo.com"
COOKIE_URL = "https://login.yahoo.com"
CRUMB_PATH = "/v1/test/getcrumb"
DEFAULT_TIMEOUT = 80.0
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/113.0"
)

ENV_PREFIX = "YF_"


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


def read_env_file(path: str | Path = ".env") -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines from a .env file without touching os.environ.

    Missing files yield an empty dict. Blank lines, ``#`` comments and lines
    without ``=`` are skipped; surrounding single or double quotes are removed.
    """
    env_path = Path(path)
    values: dict[str, str] = {}
    if not env_path.is_file():
        return values

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


@dataclass
class ClientConfig:
    """Connection settings shared by the credential handshake and API calls."""

    base_url: str = API_URL
    cookie_url: str = COOKIE_URL
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT
    dump_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        self.base_url = self.base_url.rstrip("/")
        if self.dump_dir is not None:
            self.dump_dir = Path(self.dump_dir)

    @property
    def crumb_url(self) -> str:
        return f"{self.base_url}{CRUMB_PATH}"

    @classmethod
    def from_env(
        cls,
        env_file: str | Path | None = ".env",
        environ: Mapping[str, str] | None = None,
    ) -> ClientConfig:
        """Build a config from ``YF_*`` variables.

        Values in the process environment win over values from ``env_file``.
        """
        values = read_env_file(env_file) if env_file else {}
        values.update(os.environ if environ is None else environ)

        def get(name: str) -> str | None:
            value = values.get(ENV_PREFIX + name)
            return value if value else None

        kwargs: dict[str, object] = {}
        if base_url := get("BASE_URL"):
            kwargs["base_url"] = base_url
        if cookie_url := get("COOKIE_URL"):
            kwargs["cookie_url"] = cookie_url
        if user_agent := get("USER_AGENT"):
            kwargs["user_agent"] = user_agent
        if dump_dir := get("DUMP_DIR"):
            kwargs["dump_dir"] = Path(dump_dir)
        if timeout := get("TIMEOUT"):
            try:
                kwargs["timeout"] = float(timeout)
            except ValueError as e:
                raise ConfigError(f"Invalid {ENV_PREFIX}TIMEOUT: {timeout!r}") from e

        config = cls(**kwargs)  # type: ignore[arg-type]
        logger.debug(f"Loaded client config: {config}")
        return config
