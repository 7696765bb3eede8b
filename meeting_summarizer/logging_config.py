"""Logging setup that keeps provider credentials out of log output."""
import copy
import logging
import os
import re
from typing import Any, Dict, Mapping, Optional

from uvicorn.config import LOGGING_CONFIG

_BEARER_RE = re.compile(r"(Bearer\s+)[^\s'\",]+", re.IGNORECASE)
_API_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}")


def mask_secrets(text: str) -> str:
    """Replace bearer tokens and ``sk-`` style API keys with a placeholder."""
    text = _BEARER_RE.sub(r"\1<redacted>", text)
    return _API_KEY_RE.sub("sk-<redacted>", text)


class MaskSecretsFilter(logging.Filter):
    """A logging filter that masks credentials inside log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Args keep their shape: uvicorn's access formatter unpacks them positionally.
        if isinstance(record.msg, str):
            record.msg = mask_secrets(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(_mask_value(arg) for arg in record.args)
        elif isinstance(record.args, Mapping):
            record.args = {key: _mask_value(value) for key, value in record.args.items()}
        return True


def _mask_value(value: Any) -> Any:
    return mask_secrets(value) if isinstance(value, str) else value


def setup_logging(level: Optional[str] = None) -> None:
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Handler filters also see records propagated from child loggers.
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, MaskSecretsFilter) for f in handler.filters):
            handler.addFilter(MaskSecretsFilter())


def uvicorn_log_config() -> Dict[str, Any]:
    """Return uvicorn's default logging config with credential masking on every handler.

    uvicorn's loggers do not propagate to the root logger, so the root handler
    filters installed by ``setup_logging`` never see their records.
    """
    config = copy.deepcopy(LOGGING_CONFIG)
    config.setdefault("filters", {})["mask_secrets"] = {"()": MaskSecretsFilter}
    for handler in config.get("handlers", {}).values():
        filters = handler.setdefault("filters", [])
        if "mask_secrets" not in filters:
            filters.append("mask_secrets")
    return config
