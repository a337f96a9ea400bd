"""统一异常体系

所有业务异常继承 KnownsError，按 code 分类而非按异常类型分类。
Web 层可据此自动映射 HTTP 状态码，CLI 层可据此输出友好提示（含 hint）。
"""

from __future__ import annotations

from enum import Enum


class KnownsError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(message)
        self.hint = hint

    def to_dict(self) -> dict[str, str]:
        data = {"error": str(self), "code": str(self.code)}
        if self.hint:
            data["hint"] = self.hint
        return data


class ConfigError(KnownsError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(KnownsError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ImportErrorCode(str, Enum):
    """导入错误分类"""

    SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    NO_KNOWNS_DIR = "NO_KNOWNS_DIR"
    EMPTY_IMPORT = "EMPTY_IMPORT"
    NAME_CONFLICT = "NAME_CONFLICT"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    GIT_ERROR = "GIT_ERROR"
    NPM_ERROR = "NPM_ERROR"
    INVALID_SOURCE = "INVALID_SOURCE"
    SYNC_CONFLICT = "SYNC_CONFLICT"

    def __str__(self) -> str:
        return self.value


# 调用方可重试的错误（网络抖动 / 凭据问题），其余均视为不可重试
RETRYABLE_CODES = frozenset((ImportErrorCode.NETWORK_ERROR, ImportErrorCode.AUTH_REQUIRED))


class ImportSourceError(KnownsError):
    """导入 / 同步失败

    code 为 ImportErrorCode，hint 为可选的修复建议。
    """

    def __init__(
        self, message: str, code: ImportErrorCode, hint: str = "",
    ) -> None:
        super().__init__(message, hint)
        self.code = code  # type: ignore[assignment]

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES
