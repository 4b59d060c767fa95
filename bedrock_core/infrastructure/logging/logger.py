import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from bedrock_core.config.settings import settings


class JsonFormatter(logging.Formatter):
    def __init__(self, redact: bool = False):
        super().__init__()
        self._redact = redact

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
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
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(log_dir: str = settings.log_dir, redact: bool = settings.log_redact_content) -> logging.Logger:
    """挂载 JSON 文件 handler；再次调用且目录或脱敏选项不同时替换旧 handler。"""

    logger = logging.getLogger("bedrock_core")
    logger.setLevel(logging.INFO)
    path = Path(log_dir).expanduser()
    target = os.path.abspath(path / "bedrock.log")
    for h in list(logger.handlers):
        if not getattr(h, "_bedrock_core", False):
            continue
        if h.baseFilename == target and h.formatter._redact == redact:
            return logger
        logger.removeHandler(h)
        h.close()
    path.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(target, encoding="utf-8", delay=True)
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(redact=redact))
    fh._bedrock_core = True
    logger.addHandler(fh)
    return logger


logger = setup_logger()
