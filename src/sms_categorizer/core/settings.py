import os

from dotenv import find_dotenv, load_dotenv

from sms_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}
_EXTERNAL_ENV_KEYS: set[str] = set()

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "INBOX_PATH",
    "FUZZY_MIN_CONFIDENCE",
    "FUZZY_TEXT_THRESHOLD",
    "FUZZY_SCAN_WINDOW",
    "KEYWORD_MATCH_CONFIDENCE",
    "MERCHANT_SIMILARITY_THRESHOLD",
    "MAX_MESSAGE_LENGTH",
    "INGEST_BATCH_LIMIT",
)


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    for index, char in enumerate(raw_value):
        if char == '"' and not in_single:
            in_double = not in_double
        elif char == "'" and not in_double:
            in_single = not in_single
        elif char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) >= 2 and raw_value[0] == raw_value[-1] and raw_value[0] in "\"'":
        return raw_value[1:-1]
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` lines; nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            cleaned = _strip_inline_comment(raw_value).strip()
            if not key or not cleaned:
                continue
            value = _unquote_value(cleaned)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES
    global _EXTERNAL_ENV_KEYS

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _EXTERNAL_ENV_KEYS = set(os.environ.keys())

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def is_env_override(name: str) -> bool:
    return name in _EXTERNAL_ENV_KEYS


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        if path and path not in {".", "./"}:
            os.makedirs(path, exist_ok=True)


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(
    name: str,
    default: float = 0.0,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning("[ENV] %s='%s' out of range, using default %s.", name, raw, default)
        return default
    return value


def log_environment() -> None:
    logger.info("[ENV] Configuration file: %s", _CONFIG_FILE_PATH or "<none>")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else raw_value.replace("\n", "\\n")
        source = "env" if is_env_override(key) else "config"
        logger.info("[ENV] %s=%s (%s)", key, value, source if raw_value is not None else "default")


DEFAULT_MIN_CONFIDENCE = 0.65
DEFAULT_FUZZY_THRESHOLD = 0.75
DEFAULT_SCAN_WINDOW = 100
DEFAULT_KEYWORD_CONFIDENCE = 0.7
DEFAULT_MERCHANT_SIMILARITY = 0.85
DEFAULT_MAX_MESSAGE_LENGTH = 2000
DEFAULT_INGEST_BATCH_LIMIT = 10000


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")
INBOX_PATH = os.getenv("INBOX_PATH")

ensure_dirs(DATA_DIR, LOG_DIR, CONFIG_DIR)

FUZZY_MIN_CONFIDENCE = get_env_float(
    "FUZZY_MIN_CONFIDENCE", DEFAULT_MIN_CONFIDENCE, min_value=0.0, max_value=1.0
)
FUZZY_TEXT_THRESHOLD = get_env_float(
    "FUZZY_TEXT_THRESHOLD", DEFAULT_FUZZY_THRESHOLD, min_value=0.0, max_value=1.0
)
FUZZY_SCAN_WINDOW = get_env_int("FUZZY_SCAN_WINDOW", DEFAULT_SCAN_WINDOW, min_value=1)
KEYWORD_MATCH_CONFIDENCE = get_env_float(
    "KEYWORD_MATCH_CONFIDENCE", DEFAULT_KEYWORD_CONFIDENCE, min_value=0.0, max_value=1.0
)
MERCHANT_SIMILARITY_THRESHOLD = get_env_float(
    "MERCHANT_SIMILARITY_THRESHOLD", DEFAULT_MERCHANT_SIMILARITY, min_value=0.0, max_value=1.0
)
MAX_MESSAGE_LENGTH = get_env_int("MAX_MESSAGE_LENGTH", DEFAULT_MAX_MESSAGE_LENGTH, min_value=1)
INGEST_BATCH_LIMIT = get_env_int("INGEST_BATCH_LIMIT", DEFAULT_INGEST_BATCH_LIMIT, min_value=1)
