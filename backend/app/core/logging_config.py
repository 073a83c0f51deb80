"""
日志配置模块

根 logger 的级别和格式由 LOG_LEVEL / LOG_JSON 控制。
LOG_JSON 打开时每条日志输出为单行 JSON，方便日志平台采集。

约定：日志里不出现 token、私钥和原始用户 ID。
"""
import json
import logging
import sys
from typing import Any

from app.core.config import settings


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return str(obj)


class JsonFormatter(logging.Formatter):
    """单行 JSON 格式"""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        event = getattr(record, "event", None)
        if isinstance(event, dict):
            for k, v in event.items():
                payload.setdefault(k, v)
        return json.dumps(payload, default=_json_default, ensure_ascii=False)


def configure_logging() -> None:
    """
    配置根 logger

    重复调用是安全的（会先移除已有的 handler）。
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if settings.LOG_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)

    # 第三方库的日志太吵
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
