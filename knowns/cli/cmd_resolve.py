"""CLI：模板 / 文档解析命令"""

from __future__ import annotations

import sys
from dataclasses import asdict
from pathlib import Path

import click

from knowns.cli import _echo_json, _svc, handle_errors
from knowns.core.models import ResolvedSource


def register(group: click.Group) -> None:
    group.add_command(resolve_group)


def _print_resolved(ref: str, resolved: ResolvedSource | None, as_json: bool) -> None:
    if as_json:
        _echo_json(asdict(resolved) if resolved else None)
    elif resolved:
        click.echo(f"{resolved.path}  [{resolved.source}]")
    else:
        click.echo(f"未找到: {ref}", err=True)
    if resolved is None:
        sys.exit(1)


@click.group(name="resolve")
def resolve_group() -> None:
    """解析本地与导入的模板 / 文档"""


@resolve_group.command(name="template")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def resolve_template(name: str, as_json: bool) -> None:
    """解析模板（本地优先）"""
    _print_resolved(name, _svc().resolver.resolve_template(name), as_json)


@resolve_group.command(name="doc")
@click.argument("path")
@click.option("--context", default=None, help="引用所在文档的导入名")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def resolve_doc(path: str, context: str | None, as_json: bool) -> None:
    """解析文档（导入优先，本地最后）"""
    _print_resolved(path, _svc().resolver.resolve_doc(path, context=context), as_json)


@resolve_group.command(name="templates")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def list_templates(as_json: bool) -> None:
    """列出所有可用模板"""
    templates = _svc().resolver.list_all_templates()
    if as_json:
        _echo_json([asdict(t) for t in templates])
        return
    for t in templates:
        click.echo(f"  {t.ref:40s} [{t.source}]")


@resolve_group.command(name="docs")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def list_docs(as_json: bool) -> None:
    """列出所有可用文档"""
    docs = _svc().resolver.list_all_docs()
    if as_json:
        _echo_json([asdict(d) for d in docs])
        return
    for d in docs:
        click.echo(f"  {d.ref:40s} [{d.source}]")


@resolve_group.command(name="check")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--tasks-dir", default=None, type=click.Path(file_okay=False), help="任务文件目录")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def check_refs(file: str, tasks_dir: str | None, as_json: bool) -> None:
    """检查文件中的 @doc / @task 引用是否存在"""
    content = Path(file).read_text(encoding="utf-8")
    results = _svc().resolver.validate_refs(content, tasks_dir=tasks_dir)
    broken = [r for r in results if not r.exists]

    if as_json:
        _echo_json([asdict(r) for r in results])
    else:
        for r in results:
            click.echo(f"  {'ok ' if r.exists else 'BAD'} {r.ref}")
        click.echo(f"共 {len(results)} 个引用，失效 {len(broken)} 个")

    if broken:
        sys.exit(1)
