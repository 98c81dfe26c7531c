import json
import logging
from datetime import datetime, timezone

from gpt_shell.config.settings import settings

LOGGER_NAME = "gpt_shell"


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(cfg=settings) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(cfg.log_level.upper())
    logger.propagate = False
    if any(getattr(h, "_gpt_shell", False) for h in logger.handlers):
        return logger
    log_dir = cfg.resolved_log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "gpt-shell.log", encoding="utf-8")
    fh.setLevel(cfg.log_level.upper())
    fh.setFormatter(JsonFormatter(redact_content=cfg.log_redact_content))
    fh._gpt_shell = True  # type: ignore[attr-defined]
    logger.addHandler(fh)
    return logger


def log_event(level: int, message: str, **fields) -> None:
    """带结构化字段写一条日志，字段会平铺到 JSON 行中。"""

    logger.log(level, message, extra={"extra": fields})


logger = setup_logger()
