from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv


load_dotenv()


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _parse_cors_origins(raw: str) -> Tuple[str, ...]:
    # The sidecar can rewrite files on disk, so a wildcard origin is never honoured.
    origins = _split_csv(raw)
    if not origins:
        return ("http://localhost:3000", "http://127.0.0.1:3000")
    return tuple(o for o in origins if o != "*")


@dataclass(frozen=True)
class Settings:
    watch_dir: Path = Path(os.getenv("SECWATCH_WATCH_DIR", os.getcwd()))
    debounce_ms: int = int(os.getenv("SECWATCH_DEBOUNCE_MS", "500"))
    host: str = os.getenv("SECWATCH_HOST", "127.0.0.1")
    port: int = int(os.getenv("SECWATCH_PORT", "3001"))
    cors_origins: Tuple[str, ...] = _parse_cors_origins(os.getenv("SECWATCH_CORS_ORIGINS", ""))
    disabled_rules: Tuple[str, ...] = _split_csv(os.getenv("SECWATCH_DISABLED_RULES", ""))
    max_file_bytes: int = int(os.getenv("SECWATCH_MAX_FILE_BYTES", "1000000"))
    log_level: str = os.getenv("SECWATCH_LOG_LEVEL", "INFO")

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)


settings = Settings()
