"""knowns 日志配置

日志统一写 stderr，stdout 只留给命令结果（含 --json 输出）。
导入相关日志通过 extra=import_context(...) 携带导入名 / 来源类型 / 错误码，
文本格式追加在行首的方括号里，JSON 格式作为独立字段输出，便于流水线按导入过滤。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# 可随日志记录携带的导入上下文字段
CONTEXT_FIELDS = ("import_name", "kind", "code")

# 这些第三方 logger 只在 DEBUG 时输出 INFO 级别
_QUIET_LOGGERS = ("werkzeug",)


def import_context(name: str, kind: Any = None, code: Any = None) -> dict[str, str]:
    """构造 logger 调用的 extra 参数"""
    ctx = {"import_name": name}
    if kind is not None:
        ctx["kind"] = str(kind)
    if code is not None:
        ctx["code"] = str(code)
    return ctx


def _context_of(record: logging.LogRecord) -> dict[str, str]:
    return {f: getattr(record, f) for f in CONTEXT_FIELDS if getattr(record, f, None)}


class JSONFormatter(logging.Formatter):
    """一行一个 JSON 对象

    固定字段: timestamp / level / logger / message / module / function / line，
    有导入上下文时追加 import_name / kind / code，有异常时追加 exception。
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(_context_of(record))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """人类可读格式，导入上下文显示为 [name kind code]"""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)-7s] %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ctx = _context_of(record)
        if not ctx:
            return line
        return f"[{' '.join(ctx.values())}] {line}"


def setup_logging(level: str = "WARNING", json_output: bool = False) -> None:
    """配置根日志器（可重复调用，旧 handler 会被替换）

    无法识别的级别名按 WARNING 处理。
    """
    reset_logging()
    root = logging.getLogger()
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.WARNING
    root.setLevel(resolved)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if resolved <= logging.DEBUG else logging.WARNING)


def reset_logging() -> None:
    """移除根日志器上的所有 handler（测试环境使用）"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
