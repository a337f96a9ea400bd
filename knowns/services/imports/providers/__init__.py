"""导入来源 Provider

- base.py: 抽象基类（暂存目录 / 清理 / 外部命令错误归类）
- git.py: Git 仓库（sparse checkout 优先，浅克隆回退）
- npm.py: npm 包（npm pack + 解压）
- local.py: 本地路径（复制或软链接）

来源类型是封闭集合，ProviderRegistry 负责 kind -> 实例 的映射，
每个实例只在构造时探测一次外部工具。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import ImportKind
from knowns.services.imports.providers.base import ImportProvider
from knowns.services.imports.providers.git import GitInfo, GitProvider
from knowns.services.imports.providers.local import LocalProvider
from knowns.services.imports.providers.npm import NpmProvider

if TYPE_CHECKING:
    from knowns.core.config import Config
    from knowns.utils.shell import CommandExecutor

_PROVIDER_CLASSES: dict[ImportKind, type[ImportProvider]] = {
    ImportKind.GIT: GitProvider,
    ImportKind.NPM: NpmProvider,
    ImportKind.LOCAL: LocalProvider,
}


class ProviderRegistry:
    """按来源类型懒加载 Provider 实例"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        config: Config | None = None,
    ) -> None:
        self._executor = executor
        self._config = config
        self._instances: dict[ImportKind, ImportProvider] = {}

    def register(self, provider: ImportProvider) -> None:
        """注入现成的 Provider（测试替换用）"""
        self._instances[provider.kind] = provider

    def get(self, kind: ImportKind | str) -> ImportProvider:
        try:
            kind = ImportKind(kind)
        except ValueError:
            raise ImportSourceError(
                f"未知的导入类型: {kind}", ImportErrorCode.INVALID_SOURCE,
            ) from None

        if kind == ImportKind.CATALOG:
            raise ImportSourceError(
                "暂不支持 knowns:// 目录导入",
                ImportErrorCode.INVALID_SOURCE,
                "请改用 git、npm 或本地路径导入",
            )

        if kind not in self._instances:
            self._instances[kind] = _PROVIDER_CLASSES[kind](
                executor=self._executor, config=self._config,
            )
        return self._instances[kind]


__all__ = [
    "GitInfo",
    "GitProvider",
    "ImportProvider",
    "LocalProvider",
    "NpmProvider",
    "ProviderRegistry",
]
