"""npm 来源

npm view 校验包是否存在，npm pack 下载 tarball 后解压，
并把 npm 约定的 package/ 子目录提升为暂存目录根。
"""

from __future__ import annotations

import json
import logging
import shutil
import tarfile
from pathlib import Path
from typing import TYPE_CHECKING

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import FetchOptions, ImportKind, ValidationResult
from knowns.services.imports.providers.base import ImportProvider
from knowns.services.imports.validator import assert_valid_knowns_dir, validate_knowns_dir

if TYPE_CHECKING:
    from knowns.core.config import Config
    from knowns.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

PACKAGE_DIR = "package"

_INSTALL_HINT = "请先安装 Node.js/npm 再从 npm 包导入"
_NOT_FOUND_MARKERS = ("E404", "404", "Not Found")
_AUTH_MARKERS = ("ENEEDAUTH", "E401", "authentication")
_NETWORK_MARKERS = ("ENOTFOUND", "ETIMEDOUT", "ECONNREFUSED", "EAI_AGAIN")


def package_spec(source: str, version: str | None) -> str:
    return f"{source}@{version}" if version else source


class NpmProvider(ImportProvider):
    """npm 包来源"""

    kind = ImportKind.NPM

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        config: Config | None = None,
        tool_available: bool | None = None,
    ) -> None:
        super().__init__(executor, config)
        if tool_available is None:
            tool_available = self._probe(["npm", "--version"]) is not None
        self.tool_available = tool_available

    def validate(self, source: str, options: FetchOptions) -> ValidationResult:
        if not self.tool_available:
            return ValidationResult(
                valid=False, error="npm 未安装", hint=_INSTALL_HINT,
                code=str(ImportErrorCode.NPM_ERROR),
            )

        r = self._run(
            ["npm", "view", package_spec(source, options.version), "name"],
            timeout=self.config.validate_timeout,
            error_code=ImportErrorCode.NPM_ERROR, tool_hint=_INSTALL_HINT,
        )
        if r.success:
            return ValidationResult(valid=True, kind=ImportKind.NPM)

        stderr = r.stderr or ""
        if any(m in stderr for m in _NOT_FOUND_MARKERS):
            return ValidationResult(
                valid=False, error=f"npm 包不存在: {source}",
                hint="检查包名与 registry 配置",
                code=str(ImportErrorCode.SOURCE_NOT_FOUND),
            )
        if any(m in stderr for m in _AUTH_MARKERS):
            return ValidationResult(
                valid=False, error="需要认证",
                hint="执行 'npm login' 完成认证",
                code=str(ImportErrorCode.AUTH_REQUIRED),
            )
        if any(m in stderr for m in _NETWORK_MARKERS):
            return ValidationResult(
                valid=False, error=f"无法访问 npm registry: {r.excerpt(200)}",
                hint="检查网络连接后重试",
                code=str(ImportErrorCode.NETWORK_ERROR),
            )
        return ValidationResult(valid=False, error=r.excerpt() or "无法访问 npm 包")

    def fetch(self, source: str, options: FetchOptions) -> Path:
        if not self.tool_available:
            raise ImportSourceError("npm 未安装", ImportErrorCode.NPM_ERROR, _INSTALL_HINT)

        download_dir = self.make_staging_dir()
        try:
            staging = self._pack_and_extract(source, options, download_dir)
        finally:
            self.cleanup(download_dir)

        try:
            assert_valid_knowns_dir(validate_knowns_dir(staging))
        except Exception:
            self.cleanup(staging)
            raise
        logger.info("npm 包就绪: %s -> %s", package_spec(source, options.version), staging)
        return staging

    def _pack_and_extract(self, source: str, options: FetchOptions, download_dir: Path) -> Path:
        """下载并解压到 download_dir，再把 package/ 的内容移到新的暂存目录"""
        r = self._run(
            ["npm", "pack", package_spec(source, options.version),
             "--pack-destination", str(download_dir)],
            cwd=download_dir, timeout=self.config.fetch_timeout,
            error_code=ImportErrorCode.NPM_ERROR, tool_hint=_INSTALL_HINT,
        )
        if not r.success:
            raise ImportSourceError(
                f"npm pack 失败: {r.excerpt()}", ImportErrorCode.NPM_ERROR,
            )

        tarballs = sorted(download_dir.glob("*.tgz"))
        if not tarballs:
            raise ImportSourceError("npm pack 未生成 tarball", ImportErrorCode.NPM_ERROR)

        try:
            with tarfile.open(tarballs[0]) as tf:
                tf.extractall(path=str(download_dir), filter="data")  # noqa: S202
        except (OSError, tarfile.TarError) as e:
            raise ImportSourceError(f"解压失败: {e}", ImportErrorCode.NPM_ERROR) from e

        package_dir = download_dir / PACKAGE_DIR
        if not package_dir.is_dir():
            raise ImportSourceError("解压结果中缺少 package/ 目录", ImportErrorCode.NPM_ERROR)

        staging = self.make_staging_dir()
        try:
            for child in package_dir.iterdir():
                shutil.move(str(child), str(staging / child.name))
        except OSError as e:
            self.cleanup(staging)
            raise ImportSourceError(f"整理 npm 包内容失败: {e}", ImportErrorCode.NPM_ERROR) from e
        return staging

    def get_metadata(self, staging_dir: Path, options: FetchOptions) -> dict[str, str]:
        metadata: dict[str, str] = {}
        package_json = staging_dir / "package.json"
        if package_json.is_file():
            try:
                pkg = json.loads(package_json.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("读取 package.json 失败: %s", e)
            else:
                if isinstance(pkg, dict) and pkg.get("version"):
                    metadata["version"] = str(pkg["version"])
        if options.version:
            metadata["requested_version"] = options.version
        return metadata
