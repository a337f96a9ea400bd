"""导入配置存储

职责：
- 读写 .knowns/config.json 中的 imports 数组（其余配置键原样保留）
- 读写每个导入的元数据 .knowns/imports/<name>/.import.json
- 软链接导入的元数据写在上一级: .knowns/imports/<name>.import.json
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from knowns.core.models import ImportConfig, ImportKind, ImportMetadata
from knowns.utils.yaml_io import load_json, save_json

logger = logging.getLogger(__name__)

KNOWNS_DIR = ".knowns"
CONFIG_FILE = "config.json"
IMPORTS_DIR = "imports"
METADATA_FILE = ".import.json"
LINK_METADATA_SUFFIX = ".import.json"


class ImportStore:
    """项目级导入配置 + 元数据存储"""

    def __init__(self, project_root: str | Path, knowns_dir: str = KNOWNS_DIR) -> None:
        self.project_root = Path(project_root)
        self.knowns_dir = self.project_root / knowns_dir

    # ---- 路径 ----

    @property
    def config_path(self) -> Path:
        return self.knowns_dir / CONFIG_FILE

    @property
    def imports_dir(self) -> Path:
        return self.knowns_dir / IMPORTS_DIR

    def import_dir(self, name: str) -> Path:
        return self.imports_dir / name

    def metadata_path(self, name: str) -> Path:
        return self.import_dir(name) / METADATA_FILE

    def link_metadata_path(self, name: str) -> Path:
        """软链接导入的元数据旁路文件（链接目标不属于本项目，不能写入）"""
        return self.imports_dir / f"{name}{LINK_METADATA_SUFFIX}"

    def is_linked(self, name: str) -> bool:
        return self.import_dir(name).is_symlink()

    # ---- 项目配置 ----

    def read_config(self) -> dict[str, Any]:
        return load_json(self.config_path) or {}

    def write_config(self, config: dict[str, Any]) -> None:
        save_json(self.config_path, config)

    def get_import_configs(self) -> list[ImportConfig]:
        raw = self.read_config().get("imports") or []
        configs: list[ImportConfig] = []
        for entry in raw:
            try:
                configs.append(ImportConfig.from_dict(entry))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("忽略无效的导入配置 %r: %s", entry, e)
        return configs

    def get_import_config(self, name: str) -> ImportConfig | None:
        for cfg in self.get_import_configs():
            if cfg.name == name:
                return cfg
        return None

    def import_exists(self, name: str) -> bool:
        return self.get_import_config(name) is not None

    def save_import_config(self, import_config: ImportConfig) -> None:
        """新增或覆盖同名导入配置"""
        config = self.read_config()
        imports: list[dict[str, Any]] = list(config.get("imports") or [])
        entry = import_config.to_dict()
        for i, existing in enumerate(imports):
            if existing.get("name") == import_config.name:
                imports[i] = entry
                break
        else:
            imports.append(entry)
        config["imports"] = imports
        self.write_config(config)
        logger.debug("导入配置已保存: %s", import_config.name)

    def remove_import_config(self, name: str) -> bool:
        config = self.read_config()
        imports: list[dict[str, Any]] = list(config.get("imports") or [])
        remaining = [i for i in imports if i.get("name") != name]
        if len(remaining) == len(imports):
            return False
        config["imports"] = remaining
        self.write_config(config)
        return True

    # ---- 元数据 ----

    def read_metadata(self, name: str) -> ImportMetadata | None:
        path = self.link_metadata_path(name) if self.is_linked(name) else self.metadata_path(name)
        data = load_json(path)
        if data is None and not self.import_dir(name).exists():
            # 目录已删除但旁路文件仍在
            data = load_json(self.link_metadata_path(name))
        if data is None:
            return None
        try:
            return ImportMetadata.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("导入元数据无效，按无记录处理: %s (%s)", name, e)
            return None

    def write_metadata(self, metadata: ImportMetadata, *, linked: bool = False) -> Path:
        path = self.link_metadata_path(metadata.name) if linked else self.metadata_path(metadata.name)
        save_json(path, metadata.to_dict())
        return path

    # ---- 汇总 ----

    def list_with_metadata(self) -> list[tuple[ImportConfig, ImportMetadata | None]]:
        """列出所有导入及其元数据

        除配置中的导入外，还包含 imports/ 下存在但配置中缺失的孤立目录，
        孤立目录按其元数据（如有）合成配置。
        """
        configs = self.get_import_configs()
        configured = {c.name for c in configs}
        results = [(c, self.read_metadata(c.name)) for c in configs]

        if not self.imports_dir.is_dir():
            return results
        try:
            entries = sorted(self.imports_dir.iterdir())
        except OSError as e:
            logger.warning("无法扫描导入目录 %s: %s", self.imports_dir, e)
            return results

        for entry in entries:
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            if entry.name in configured:
                continue
            metadata = self.read_metadata(entry.name)
            results.append((
                ImportConfig(
                    name=entry.name,
                    source=metadata.source if metadata else "unknown",
                    kind=metadata.kind if metadata else ImportKind.LOCAL,
                ),
                metadata,
            ))
        return results
