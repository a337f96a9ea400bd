"""公共 fixture：构造 .knowns 来源项目、假命令执行器、隔离配置"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

import knowns.core.config as cfgmod
from knowns.services.container import reset_container
from knowns.utils.shell import CommandResult


def write_knowns(
    root: Path,
    templates: dict[str, dict[str, str]] | None = None,
    docs: dict[str, str] | None = None,
) -> Path:
    """在 root 下写出 .knowns/templates/<name>/<file> 与 .knowns/docs/<path>"""
    knowns = root / ".knowns"
    knowns.mkdir(parents=True, exist_ok=True)
    for name, files in (templates or {}).items():
        for rel, content in files.items():
            path = knowns / "templates" / name / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
    for rel, content in (docs or {}).items():
        path = knowns / "docs" / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture()
def make_source(tmp_path: Path) -> Callable[..., Path]:
    """创建一个带 .knowns/ 的来源项目"""

    def _make(name: str = "shared", **kwargs) -> Path:
        return write_knowns(tmp_path / "sources" / name, **kwargs)

    return _make


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """空的目标项目（只有 .knowns/）"""
    root = tmp_path / "project"
    (root / ".knowns").mkdir(parents=True)
    return root


@pytest.fixture()
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, project: Path) -> cfgmod.Config:
    """独立的全局配置 + 全新容器"""
    cfg = cfgmod.Config(project_root=str(project))
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield cfg
    reset_container()


class FakeExecutor:
    """按命令前缀返回预设结果的执行器

    responses 的值可以是 CommandResult，也可以是要抛出的异常。
    未匹配的命令返回 rc=0 的空结果。
    """

    def __init__(self, responses: dict[tuple[str, ...], CommandResult | Exception] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[list[str]] = []

    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        args = list(cmd) if not isinstance(cmd, str) else cmd.split()
        self.calls.append(args)
        best: tuple[str, ...] = ()
        for prefix in self.responses:
            if tuple(args[: len(prefix)]) == prefix and len(prefix) > len(best):
                best = prefix
        if not best:
            return CommandResult(0, "", "")
        response = self.responses[best]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture()
def fake_executor() -> type[FakeExecutor]:
    return FakeExecutor
