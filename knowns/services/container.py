"""服务容器：CLI 与 Web 层共享的服务实例

同一容器内的 ImportService / ImportResolver 共享同一个 ImportStore，
Provider 只在首次使用时探测外部工具。

用法:
    container = ServiceContainer(project_root="path/to/project")
    container.imports.sync_all_imports()
    container.resolver.resolve_doc("shared/guide")

    # 全局单例（Web）
    from knowns.services.container import get_container
    svc = get_container().imports
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from knowns.core.config import Config
    from knowns.services.import_service import ImportService
    from knowns.services.imports.providers import ProviderRegistry
    from knowns.services.imports.resolver import ImportResolver


class ServiceContainer:
    """懒加载服务容器

    project_root 未指定时取 Config.project_root。
    """

    def __init__(self, config: Config | None = None, project_root: str = "") -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from knowns.core.config import get_config
            config = get_config()
        self._config = config
        self._project_root = project_root or config.project_root

    @property
    def config(self) -> Config:
        return self._config

    @property
    def providers(self) -> ProviderRegistry:
        if "providers" not in self._instances:
            from knowns.services.imports.providers import ProviderRegistry
            self._instances["providers"] = ProviderRegistry(config=self._config)
        return self._instances["providers"]  # type: ignore[return-value]

    @property
    def imports(self) -> ImportService:
        if "imports" not in self._instances:
            from knowns.services.import_service import ImportService
            self._instances["imports"] = ImportService(
                project_root=self._project_root,
                config=self._config,
                providers=self.providers,
            )
        return self._instances["imports"]  # type: ignore[return-value]

    @property
    def resolver(self) -> ImportResolver:
        if "resolver" not in self._instances:
            from knowns.services.imports.resolver import ImportResolver
            self._instances["resolver"] = ImportResolver(self.imports.store)
        return self._instances["resolver"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """替换全局容器（CLI 按 --project 构造）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
