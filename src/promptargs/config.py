from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class Settings:
    discord_token: str
    command_prefix: str
    store_path: Path
    log_limit: int = 2000
    prompt_retries: int = 1
    prompt_time: float = 30.0
    prompt_cancel_word: str = "cancel"
    prompt_stop_word: str = "stop"

    @staticmethod
    def load(path: Path = Path("settings.txt")) -> "Settings":
        values = _parse_settings_file(path)
        token = values.get("DISCORD_TOKEN", "").strip()
        command_prefix = values.get("COMMAND_PREFIX", "!")
        store_path = Path(values.get("STORE_PATH", "data/promptargs.msgpack"))
        cancel_word = values.get("PROMPT_CANCEL_WORD", "cancel").strip()
        stop_word = values.get("PROMPT_STOP_WORD", "stop").strip()
        if not token:
            raise RuntimeError(f"DISCORD_TOKEN is required in {path}.")
        if not cancel_word or not stop_word:
            raise RuntimeError("PROMPT_CANCEL_WORD and PROMPT_STOP_WORD must not be blank.")
        try:
            log_limit = int(values.get("LOG_LIMIT", "2000"))
            retries = int(values.get("PROMPT_RETRIES", "1"))
            time = float(values.get("PROMPT_TIME", "30"))
        except ValueError as exc:
            raise RuntimeError(f"Invalid numeric value in {path}: {exc}") from exc
        if retries < 0 or time <= 0:
            raise RuntimeError("PROMPT_RETRIES must be >= 0 and PROMPT_TIME must be > 0.")
        return Settings(
            discord_token=token,
            command_prefix=command_prefix,
            store_path=store_path,
            log_limit=max(1, log_limit),
            prompt_retries=retries,
            prompt_time=time,
            prompt_cancel_word=cancel_word,
            prompt_stop_word=stop_word,
        )

    def default_prompt(self) -> dict[str, Any]:
        """Handler-wide prompt layer, the lowest precedence in the merge."""
        return {
            "retries": self.prompt_retries,
            "time": self.prompt_time,
            "cancel_word": self.prompt_cancel_word,
            "stop_word": self.prompt_stop_word,
        }


def _parse_settings_file(path: Path) -> dict[str, str]:
    if not path.exists():
        raise RuntimeError(f"{path} not found. Copy settings.example.txt to {path} and fill values.")
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values
