"""外部命令执行（git / npm）

通过 CommandExecutor 协议抽象子进程执行，Provider 测试注入假实现即可。
外部工具不存在时 LocalExecutor 抛 FileNotFoundError，
超时抛 subprocess.TimeoutExpired，均由调用方（Provider）归类为导入错误。

所有命令以非交互方式运行：git 不弹出凭据输入，认证失败直接返回错误输出，
由 Provider 识别为 AUTH_REQUIRED。
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

# 禁止外部工具等待终端输入
NON_INTERACTIVE_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GCM_INTERACTIVE": "never",
    "npm_config_update_notifier": "false",
    "npm_config_fund": "false",
}


@dataclass
class CommandResult:
    """命令执行结果"""

    returncode: int
    stdout: str
    stderr: str
    args: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def excerpt(self, limit: int = 300) -> str:
        """错误信息摘要：优先 stderr，为空时取 stdout"""
        text = (self.stderr or "").strip() or (self.stdout or "").strip()
        return text[:limit]


class CommandExecutor(Protocol):
    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        ...


class LocalExecutor:
    """在本机执行命令，环境变量 = 当前进程环境 + 非交互设置 + env"""

    def __init__(self, base_env: dict[str, str] | None = None) -> None:
        self.base_env = dict(NON_INTERACTIVE_ENV if base_env is None else base_env)

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = list(cmd)
        logger.debug("执行: %s (cwd=%s, timeout=%s)", " ".join(args), cwd, timeout)
        r = subprocess.run(
            args, capture_output=True, text=True,
            cwd=cwd, env={**os.environ, **self.base_env, **(env or {})},
            check=False, timeout=timeout, stdin=subprocess.DEVNULL,
        )
        if r.returncode != 0:
            logger.debug("命令返回 %d: %s", r.returncode, args[0])
        return CommandResult(r.returncode, r.stdout, r.stderr, args)


_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor
