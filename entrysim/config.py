"""Config file support for Entrysim.

Loads default CLI arguments from:
  1. ~/.entrysim.yaml  (user-level)
  2. ./entrysim.yaml   (project-level, overrides user-level)
  3. ENTRYSIM_* environment variables (override both files)

Example config file:

    # ~/.entrysim.yaml
    db: ~/.local/share/entrysim/entries.db
    threshold: 0.6
    workers: 8
    per-feed: true
    since: 1w

Every value is type-checked and range-checked when it is loaded. A bad
value is logged and dropped so the parser default stays in effect; it never
reaches the engine.
"""
import logging
import math
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "ENTRYSIM_"
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _as_int(minimum: int) -> Callable[[Any], int]:
    def convert(value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"expected an integer, got {value!r}")
        n = int(value)
        if n < minimum:
            raise ValueError(f"must be >= {minimum}, got {n}")
        return n
    return convert


def _as_float(minimum: float, maximum: Optional[float] = None) -> Callable[[Any], float]:
    def convert(value: Any) -> float:
        if isinstance(value, bool):
            raise ValueError(f"expected a number, got {value!r}")
        x = float(value)
        if math.isnan(x) or x < minimum or (maximum is not None and x > maximum):
            bounds = f"{minimum}-{maximum}" if maximum is not None else f">= {minimum}"
            raise ValueError(f"must be {bounds}, got {x}")
        return x
    return convert


def _one_of(*choices: str) -> Callable[[Any], str]:
    def convert(value: Any) -> str:
        text = str(value).strip().lower()
        if text not in choices:
            raise ValueError(f"must be one of {', '.join(choices)}, got {value!r}")
        return text
    return convert


def _as_since(value: Any) -> str:
    from entrysim.utils import parse_since
    text = str(value).strip()
    parse_since(text)
    return text


def _as_str(value: Any) -> str:
    return str(value)


# field -> converter; converters raise ValueError/TypeError on bad input
FIELDS: Dict[str, Callable[[Any], Any]] = {
    "verbose": _as_bool,
    "quiet": _as_bool,
    "per_feed": _as_bool,
    "dry_run": _as_bool,
    "workers": _as_int(1),
    "buffer": _as_int(1),
    "threshold": _as_float(0.0, 1.0),
    "timeout": _as_float(0.0),
    "task_timeout": _as_float(0.0),
    "tf": _one_of("raw", "normalized"),
    "format": _one_of("console", "json"),
    "since": _as_since,
    "db": _as_str,
    "stopwords": _as_str,
}


def validate(raw: Mapping[str, Any], source: str) -> Dict[str, Any]:
    """Coerce known keys, dropping (and logging) unknown keys and bad values."""
    config: Dict[str, Any] = {}
    for key, value in raw.items():
        field = str(key).replace("-", "_").lower()
        convert = FIELDS.get(field)
        if convert is None:
            logger.debug(f"[Config] Ignoring unknown key {key!r} in {source}")
            continue
        try:
            config[field] = convert(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"[Config] Ignoring {field} from {source}: {e}")
    return config


def config_paths() -> List[Path]:
    return [
        Path.home() / ".entrysim.yaml",
        Path.home() / ".entrysim.yml",
        Path("entrysim.yaml"),
        Path("entrysim.yml"),
    ]


def load_config(paths: Optional[Iterable[Path]] = None) -> Dict[str, Any]:
    """Load config from YAML files; later files override earlier ones."""
    import yaml

    config: Dict[str, Any] = {}
    for p in config_paths() if paths is None else paths:
        if not p.is_file():
            continue
        try:
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"[Config] Failed to load {p}: {e}")
            continue
        if not isinstance(data, dict):
            logger.warning(f"[Config] {p} must be a mapping, got {type(data).__name__}")
            continue
        config.update(validate(data, str(p)))
        logger.debug(f"[Config] Loaded {p}")
    return config


def load_env_config(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load config from ENTRYSIM_* environment variables.

    Maps ENTRYSIM_THRESHOLD=0.7 → threshold=0.7, ENTRYSIM_PER_FEED=1 → per_feed=True.
    """
    environ = os.environ if environ is None else environ
    raw = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX)
    }
    return validate(raw, "environment")


def apply_config_defaults(parser, args):
    """Apply config values to CLI args left at their defaults (CLI always wins).

    Priority: CLI flags > env vars (ENTRYSIM_*) > config files > parser defaults.
    """
    config = load_config()
    config.update(load_env_config())
    for key, value in config.items():
        if not hasattr(args, key):
            continue
        if getattr(args, key) != parser.get_default(key):
            continue  # set on the command line
        setattr(args, key, value)
    return args


_STARTER_CONFIG = """\
# Entrysim configuration — customize your defaults here.
# CLI flags and ENTRYSIM_* environment variables override these values.

# SQLite database holding users, feeds, entries and similarity edges
# db: entrysim.db

# Minimum cosine similarity (0.0-1.0) for two entries to be linked
# threshold: 0.5

# Parallel comparison workers and queue size (both >= 1)
# workers: 5
# buffer: 200

# Term frequency: raw (counts) or normalized (counts / document length)
# tf: raw

# Compare entries within each feed instead of across all of a user's feeds.
# Entries without a feed form one extra corpus.
# per_feed: false

# Only consider entries newer than this (e.g. 12h, 1d, 1w, 2026-02-14)
# since: 1w

# Give up on a user's corpus after this many seconds (0 = no limit)
# timeout: 0

# Give up on one entry's scan after this many seconds (0 = no limit)
# task_timeout: 0

# Extra stopwords file, one word per line
# stopwords: ~/.entrysim-stopwords.txt
"""


def generate_starter_config(path: Optional[Path] = None) -> Path:
    """Write a starter config file, next to (never over) an existing one."""
    path = path or Path.home() / ".entrysim.yaml"
    if path.exists():
        path = path.with_name(path.name + ".new")
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    return path
