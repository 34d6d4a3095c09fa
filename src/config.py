"""Settings for md-kanban.

Resolution order for every key: real environment variable > `.env` file
in the working directory > default.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional
import logging
import os

DOTENV_PATH = Path.cwd() / '.env'
DEFAULT_LOG_DIR = Path.home() / '.local' / 'state' / 'md-kanban'

_FALSY = {"0", "false", "no", "off", ""}


def truthy(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSY


def read_dotenv(path: Path) -> Dict[str, str]:
    """Parse KEY=VALUE lines; comments and malformed lines are skipped."""
    values: Dict[str, str] = {}
    if not path.exists():
        return values
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        values[k.strip()] = v.strip().strip('"').strip("'")
    return values


class Env:
    """Lookup over the process environment with a .env fallback."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, dotenv: Optional[Path] = None):
        self.environ = os.environ if environ is None else environ
        self.file_values = read_dotenv(dotenv or DOTENV_PATH)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.environ.get(key)
        if value:
            return value
        return self.file_values.get(key, default)


@dataclass
class Settings:
    folder: Path
    wip_limit: bool = False
    intake_lane: str = "Todo"
    watch: bool = True
    reload_debounce_ms: int = 1000
    alt_screen: bool = True
    log_dir: Path = DEFAULT_LOG_DIR
    log_level: int = logging.WARNING

    @classmethod
    def load(cls, env: Optional[Env] = None) -> "Settings":
        env = env or Env()
        try:
            debounce = int(env.get('KANBAN_RELOAD_DEBOUNCE_MS', '1000'))
        except ValueError:
            debounce = 1000
        return cls(
            folder=Path(env.get('KANBAN_FOLDER') or Path.cwd()),
            wip_limit=truthy(env.get('KANBAN_WIP_LIMIT'), False),
            intake_lane=env.get('KANBAN_INTAKE_LANE') or "Todo",
            watch=truthy(env.get('KANBAN_WATCH'), True),
            reload_debounce_ms=debounce,
            alt_screen=truthy(env.get('KANBAN_ALT_SCREEN'), True),
            log_dir=Path(env.get('KANBAN_LOG_DIR') or DEFAULT_LOG_DIR),
            log_level=parse_level(env.get('KANBAN_LOG_LEVEL'), logging.WARNING),
        )


def parse_level(name: Optional[str], default: int) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default
