"""Git 来源

优先使用 sparse checkout 只拉取 .knowns/（需要 git >= 2.25），
否则回退为浅克隆整个仓库。两种方式得到的 .knowns/ 内容一致。
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import FetchOptions, ImportKind, ValidationResult
from knowns.services.imports.providers.base import ImportProvider
from knowns.services.imports.validator import (
    KNOWNS_DIR,
    assert_valid_knowns_dir,
    validate_knowns_dir,
)

if TYPE_CHECKING:
    from knowns.core.config import Config
    from knowns.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

_SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")
_VERSION_RE = re.compile(r"(\d+)\.(\d+)")
_AUTH_MARKERS = ("Authentication failed", "Permission denied", "could not read Username")
_NETWORK_MARKERS = ("Could not resolve host", "Connection timed out", "Connection refused")

_INSTALL_HINT = "请先安装 git 再从 Git 仓库导入"


@dataclass(frozen=True)
class GitInfo:
    """git 可用性探测结果（Provider 构造时计算一次）"""

    available: bool
    version: tuple[int, int] = (0, 0)
    supports_sparse: bool = False


def parse_git_version(output: str, minimum: tuple[int, int]) -> GitInfo:
    """解析 `git --version` 输出"""
    m = _VERSION_RE.search(output)
    if not m:
        return GitInfo(available=True)
    version = (int(m.group(1)), int(m.group(2)))
    return GitInfo(available=True, version=version, supports_sparse=version >= minimum)


def _classify_failure(stderr: str) -> ImportErrorCode:
    if any(marker in stderr for marker in _AUTH_MARKERS):
        return ImportErrorCode.AUTH_REQUIRED
    if any(marker in stderr for marker in _NETWORK_MARKERS):
        return ImportErrorCode.NETWORK_ERROR
    return ImportErrorCode.GIT_ERROR


class GitProvider(ImportProvider):
    """Git 仓库来源"""

    kind = ImportKind.GIT

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        config: Config | None = None,
        git_info: GitInfo | None = None,
    ) -> None:
        super().__init__(executor, config)
        self.git_info = git_info if git_info is not None else self._detect()

    def _detect(self) -> GitInfo:
        r = self._probe(["git", "--version"])
        if r is None:
            return GitInfo(available=False)
        info = parse_git_version(r.stdout, self.config.sparse_min_version)
        logger.debug("git 版本: %s (sparse=%s)", info.version, info.supports_sparse)
        return info

    # ---- 校验 ----

    def validate(self, source: str, options: FetchOptions) -> ValidationResult:
        if not self.git_info.available:
            return ValidationResult(
                valid=False, error="git 未安装", hint=_INSTALL_HINT,
                code=str(ImportErrorCode.GIT_ERROR),
            )
        ref = options.ref or "HEAD"
        if not _SAFE_REF_RE.match(ref):
            return ValidationResult(valid=False, error=f"ref 包含非法字符: {ref}")

        r = self._run(
            ["git", "ls-remote", "--exit-code", source, ref],
            timeout=self.config.validate_timeout,
            error_code=ImportErrorCode.GIT_ERROR, tool_hint=_INSTALL_HINT,
        )
        if r.success:
            return ValidationResult(valid=True, kind=ImportKind.GIT)

        code = _classify_failure(r.stderr)
        if code == ImportErrorCode.AUTH_REQUIRED:
            return ValidationResult(
                valid=False, error="需要认证",
                hint="请配置 git 凭据或改用 SSH 地址", code=str(code),
            )
        if code == ImportErrorCode.NETWORK_ERROR:
            return ValidationResult(
                valid=False, error=f"无法连接仓库: {r.excerpt(200)}",
                hint="检查网络连接后重试", code=str(code),
            )
        if r.returncode == 2:
            # --exit-code: 仓库可访问但 ref 不存在
            return ValidationResult(
                valid=False, error=f"ref 不存在: {ref}",
                hint="检查分支或 tag 名称",
                code=str(ImportErrorCode.SOURCE_NOT_FOUND),
            )
        return ValidationResult(
            valid=False, error="仓库不存在或无权访问",
            hint="检查 URL 与访问权限",
            code=str(ImportErrorCode.SOURCE_NOT_FOUND),
        )

    # ---- 获取 ----

    def fetch(self, source: str, options: FetchOptions) -> Path:
        if not self.git_info.available:
            raise ImportSourceError("git 未安装", ImportErrorCode.GIT_ERROR, _INSTALL_HINT)

        ref = options.ref or "HEAD"
        staging = self.make_staging_dir()
        try:
            if self.git_info.supports_sparse:
                self.sparse_checkout(source, staging, ref)
            else:
                self.full_clone(source, staging, ref)
            assert_valid_knowns_dir(validate_knowns_dir(staging))
        except OSError as e:
            self.cleanup(staging)
            raise ImportSourceError(f"Git 操作失败: {e}", ImportErrorCode.GIT_ERROR) from e
        except Exception:
            self.cleanup(staging)
            raise
        logger.info("Git 就绪: %s@%s -> %s", source, ref, staging)
        return staging

    def _git(self, args: list[str], cwd: Path) -> None:
        r = self._run(
            ["git", *args], cwd=cwd, timeout=self.config.fetch_timeout,
            error_code=ImportErrorCode.GIT_ERROR, tool_hint=_INSTALL_HINT,
        )
        if not r.success:
            raise ImportSourceError(
                f"git {args[0]} 失败 (rc={r.returncode}): {r.excerpt()}",
                _classify_failure(r.stderr),
            )

    def sparse_checkout(self, source: str, staging: Path, ref: str) -> None:
        """只检出 .knowns/ 目录"""
        self._git(["init", "-q"], staging)
        self._git(["remote", "add", "origin", source], staging)
        self._git(["sparse-checkout", "init", "--cone"], staging)
        self._git(["sparse-checkout", "set", KNOWNS_DIR], staging)
        self._git(["fetch", "-q", "--depth=1", "origin", ref], staging)
        self._git(["checkout", "-q", "FETCH_HEAD"], staging)

    def full_clone(self, source: str, staging: Path, ref: str) -> None:
        """浅克隆整个仓库（旧版本 git 的回退路径）"""
        args = ["clone", "-q", "--depth=1"]
        if ref != "HEAD":
            args += ["--branch", ref]
        self._git([*args, source, "."], staging)

    # ---- 元数据 ----

    def get_metadata(self, staging_dir: Path, options: FetchOptions) -> dict[str, str]:
        metadata: dict[str, str] = {}
        try:
            r = self.executor.execute(
                ["git", "rev-parse", "HEAD"], cwd=str(staging_dir),
                timeout=self.config.validate_timeout,
            )
            if not r.success:
                return metadata
            metadata["commit"] = r.stdout.strip()

            r = self.executor.execute(
                ["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=str(staging_dir),
                timeout=self.config.validate_timeout,
            )
            branch = r.stdout.strip()
            if r.success and branch and branch != "HEAD":
                metadata["ref"] = branch
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("读取 git 元数据失败: %s", e)
        return metadata
