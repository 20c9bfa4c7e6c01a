from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_GENERATOR_ENDPOINT = "http://localhost:8888/.netlify/functions/article-content"
DEFAULT_IMAGE_SEARCH_URL = "https://duckduckgo.com/html/?q={query}"
DEFAULT_IMAGE_FALLBACK_URL = "https://source.unsplash.com/random/1200x800/?article"


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_ini(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}

    parser = configparser.ConfigParser()
    parser.optionxform = str
    parser.read(path, encoding="utf-8")

    values: dict[str, str] = {}
    for key, value in parser.defaults().items():
        values[key.upper()] = value
    for section in parser.sections():
        for key, value in parser.items(section):
            values[key.upper()] = value
    return values


def _parse_dotenv(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}

    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if (
            len(value) >= 2
            and value[0] == value[-1]
            and value[0] in {"'", '"'}
        ):
            value = value[1:-1]

        if key:
            values[key.upper()] = value
    return values


def _pick(
    values: Mapping[str, str],
    key: str,
    default: Optional[str] = None,
) -> Optional[str]:
    value = values.get(key)
    if value is None:
        return default
    return str(value)


def _split_csv(value: Optional[str]) -> tuple[str, ...]:
    raw = (value or "").strip()
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass
class Settings:
    db_path: Path
    author_id: Optional[str]

    generator_provider: str
    generator_endpoint: str
    image_provider: str
    image_search_url: str
    image_fallback_url: str

    request_timeout_sec: float
    request_user_agent: str

    api_key: Optional[str]
    api_cors_origins: tuple[str, ...]

    dry_run: bool

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "Settings":
        values = {key.upper(): str(value) for key, value in mapping.items() if value is not None}
        return cls(
            db_path=Path(
                _pick(values, "DB_PATH", "./data/article_spinner.db") or "./data/article_spinner.db"
            ).expanduser(),
            author_id=(_pick(values, "AUTHOR_ID") or "").strip() or None,
            generator_provider=(_pick(values, "GENERATOR_PROVIDER", "serverless") or "serverless").strip().lower(),
            generator_endpoint=(
                _pick(values, "GENERATOR_ENDPOINT", DEFAULT_GENERATOR_ENDPOINT) or DEFAULT_GENERATOR_ENDPOINT
            ).strip(),
            image_provider=(_pick(values, "IMAGE_PROVIDER", "unsplash") or "unsplash").strip().lower(),
            image_search_url=(
                _pick(values, "IMAGE_SEARCH_URL", DEFAULT_IMAGE_SEARCH_URL) or DEFAULT_IMAGE_SEARCH_URL
            ).strip(),
            image_fallback_url=(
                _pick(values, "IMAGE_FALLBACK_URL", DEFAULT_IMAGE_FALLBACK_URL) or DEFAULT_IMAGE_FALLBACK_URL
            ).strip(),
            request_timeout_sec=float(_pick(values, "REQUEST_TIMEOUT_SEC", "60") or "60"),
            request_user_agent=(_pick(
                values,
                "REQUEST_USER_AGENT",
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/123.0.0.0 Safari/537.36",
            ) or "").strip(),
            api_key=(_pick(values, "API_KEY") or "").strip() or None,
            api_cors_origins=_split_csv(_pick(values, "API_CORS_ORIGINS")),
            dry_run=_as_bool(_pick(values, "DRY_RUN", "false"), default=False),
        )

    @classmethod
    def from_files(
        cls,
        *,
        config_file: Path | str = "config.ini",
        env_file: Path | str = ".env",
        base_env: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        merged_values: dict[str, str] = {}
        merged_values.update(_parse_ini(Path(config_file)))
        merged_values.update(_parse_dotenv(Path(env_file)))
        if base_env is None:
            base_env = os.environ
        for key, value in base_env.items():
            if value is not None:
                merged_values[key.upper()] = str(value)
        return cls.from_mapping(merged_values)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.from_mapping(os.environ)

    def ensure_dirs(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
