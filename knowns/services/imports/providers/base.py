"""导入来源 Provider 抽象基类

每种来源类型（git / npm / local）实现 validate / fetch / get_metadata，
共用暂存目录创建、清理以及外部命令调用的错误归类。
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.utils.shell import CommandExecutor, CommandResult, get_executor

if TYPE_CHECKING:
    from knowns.core.config import Config
    from knowns.core.models import FetchOptions, ImportKind, ValidationResult

logger = logging.getLogger(__name__)


class ImportProvider(ABC):
    """导入来源公共接口"""

    kind: ImportKind

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        config: Config | None = None,
    ) -> None:
        if config is None:
            from knowns.core.config import get_config
            config = get_config()
        self.config = config
        self.executor = executor or get_executor()

    @abstractmethod
    def validate(self, source: str, options: FetchOptions) -> ValidationResult:
        """校验来源可访问"""

    @abstractmethod
    def fetch(self, source: str, options: FetchOptions) -> Path:
        """获取来源到暂存目录，返回暂存目录路径

        返回的目录保证包含 .knowns/；否则抛错前已完成清理。
        """

    @abstractmethod
    def get_metadata(self, staging_dir: Path, options: FetchOptions) -> dict[str, str]:
        """从暂存目录读取来源信息（commit / ref / version）"""

    # ---- 公共工具 ----

    def make_staging_dir(self) -> Path:
        """创建本次操作独占的暂存目录（随机后缀）"""
        return Path(tempfile.mkdtemp(prefix=self.config.staging_prefix))

    @staticmethod
    def cleanup(directory: str | Path) -> None:
        """删除暂存目录，目录不存在时静默"""
        path = Path(directory)
        if not path.exists():
            return
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning("暂存目录清理不完整: %s", path)

    def _run(
        self,
        args: list[str],
        *,
        cwd: str | Path = ".",
        timeout: int | None = None,
        error_code: ImportErrorCode,
        tool_hint: str = "",
    ) -> CommandResult:
        """执行外部命令

        工具不存在 -> error_code（不可重试）；超时 -> NETWORK_ERROR。
        返回码非零不在此处理，由调用方根据 stderr 归类。
        """
        try:
            return self.executor.execute(args, cwd=str(cwd), timeout=timeout)
        except FileNotFoundError as e:
            raise ImportSourceError(f"{args[0]} 未安装", error_code, tool_hint) from e
        except subprocess.TimeoutExpired as e:
            raise ImportSourceError(
                f"{args[0]} 执行超时 ({timeout}s): {' '.join(args[:3])}",
                ImportErrorCode.NETWORK_ERROR,
                "检查网络连接后重试",
            ) from e

    def _probe(self, args: list[str]) -> CommandResult | None:
        """探测外部工具，工具不可用返回 None"""
        try:
            r = self.executor.execute(args, timeout=self.config.validate_timeout)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("工具探测失败 %s: %s", args[0], e)
            return None
        return r if r.success else None
