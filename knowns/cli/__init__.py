"""knowns 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
import json
import os
import sys
from typing import Any, Callable

import click

from knowns import __version__
from knowns.core.exceptions import KnownsError
from knowns.services.container import ServiceContainer, get_container, set_container
from knowns.utils.logger import setup_logging


def _svc() -> ServiceContainer:
    """获取全局服务容器的快捷方式"""
    return get_container()


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """KnownsError -> 友好提示 + 退出码 1；命令带 --json 时输出 JSON"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except KnownsError as e:
            if kwargs.get("as_json"):
                _echo_json({"success": False, **e.to_dict()})
            else:
                click.echo(f"错误: {e}", err=True)
                if e.hint:
                    click.echo(f"提示: {e.hint}", err=True)
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--project", "-C", default="", help="项目根目录（默认取配置中的 project_root）")
def main(project: str) -> None:
    """knowns - 导入与同步外部模板 / 文档"""
    setup_logging(
        level=os.getenv("KNOWNS_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("KNOWNS_LOG_JSON", "") == "1",
    )
    config_path = os.getenv("KNOWNS_CONFIG", "")
    if config_path:
        from knowns.core.config import init_config
        try:
            init_config(config_path)
        except KnownsError as e:
            raise click.ClickException(str(e)) from e
    set_container(ServiceContainer(project_root=project))


# 注册各领域子命令
from knowns.cli.cmd_import import register as _reg_import  # noqa: E402
from knowns.cli.cmd_resolve import register as _reg_resolve  # noqa: E402
from knowns.cli.cmd_serve import register as _reg_serve  # noqa: E402

_reg_import(main)
_reg_resolve(main)
_reg_serve(main)
