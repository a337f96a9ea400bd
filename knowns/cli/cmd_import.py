"""CLI：导入管理命令"""

from __future__ import annotations

import sys
from typing import Any

import click

from knowns.cli import _echo_json, _svc, handle_errors
from knowns.core.exceptions import ImportErrorCode, ImportSourceError
from knowns.core.models import (
    SKIP_LOCAL_MODIFIED,
    FileAction,
    ImportKind,
    ImportOptions,
    ImportResult,
    SyncOptions,
)

_ACTION_MARKS = {
    FileAction.ADD: "+",
    FileAction.UPDATE: "~",
    FileAction.DELETE: "-",
    FileAction.SKIP: "=",
}


def register(group: click.Group) -> None:
    group.add_command(import_group)


def _print_result(result: ImportResult, *, dry_run: bool = False, verbose: bool = True) -> None:
    if not result.success:
        click.echo(f"  {result.name}: 失败 - {result.error}", err=True)
        return

    if verbose:
        for change in result.changes:
            if change.action == FileAction.SKIP and change.skip_reason != SKIP_LOCAL_MODIFIED:
                continue
            line = f"  {_ACTION_MARKS[change.action]} {change.path}"
            if change.skip_reason:
                line += f" ({change.skip_reason})"
            click.echo(line)

    prefix = "[dry-run] " if dry_run else ""
    click.echo(
        f"{prefix}{result.name}: 新增 {result.count(FileAction.ADD)}, "
        f"更新 {result.count(FileAction.UPDATE)}, "
        f"删除 {result.count(FileAction.DELETE)}, "
        f"跳过 {result.count(FileAction.SKIP)}"
    )
    if result.conflicts:
        click.echo(f"  {len(result.conflicts)} 个文件有本地修改未覆盖，使用 --force 覆盖")


@click.group(name="import")
def import_group() -> None:
    """外部 .knowns 内容导入管理"""


@import_group.command(name="add")
@click.argument("source")
@click.option("--name", default="", help="导入名称（默认从来源推导）")
@click.option(
    "--type", "kind", default=None,
    type=click.Choice([ImportKind.GIT.value, ImportKind.NPM.value, ImportKind.LOCAL.value]),
    help="来源类型（默认自动判断）",
)
@click.option("--ref", default=None, help="git 分支 / tag")
@click.option("--version", "version", default=None, help="npm 版本范围")
@click.option("--include", multiple=True, help="只导入匹配的文件（glob，可多次）")
@click.option("--exclude", multiple=True, help="排除匹配的文件（glob，可多次）")
@click.option("--link", is_flag=True, help="本地来源使用软链接而非复制")
@click.option("--force", is_flag=True, help="覆盖同名导入与本地修改")
@click.option("--dry-run", is_flag=True, help="只列出将导入的文件")
@click.option("--no-save", is_flag=True, help="不写入 config.json")
@click.option("--auto-sync", is_flag=True, help="允许 'import sync' 批量同步")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def import_add(source: str, **kwargs: Any) -> None:
    """从 git 仓库、npm 包或本地路径导入"""
    options = ImportOptions(
        name=kwargs["name"],
        kind=ImportKind(kwargs["kind"]) if kwargs["kind"] else None,
        ref=kwargs["ref"],
        version=kwargs["version"],
        include=list(kwargs["include"]) or None,
        exclude=list(kwargs["exclude"]) or None,
        link=kwargs["link"],
        force=kwargs["force"],
        dry_run=kwargs["dry_run"],
        no_save=kwargs["no_save"],
        auto_sync=kwargs["auto_sync"],
    )
    result = _svc().imports.import_source(source, options)
    if kwargs["as_json"]:
        _echo_json(result.to_dict())
        return
    _print_result(result, dry_run=options.dry_run)


@import_group.command(name="sync")
@click.argument("name", required=False)
@click.option("--force", is_flag=True, help="覆盖本地修改，并同步未开启 autoSync 的导入")
@click.option("--prune", is_flag=True, help="删除来源中已不存在的文件")
@click.option("--dry-run", is_flag=True, help="只列出将同步的文件")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def import_sync(name: str | None, force: bool, prune: bool, dry_run: bool, as_json: bool) -> None:
    """同步单个导入，不指定名称时同步全部"""
    options = SyncOptions(force=force, prune=prune, dry_run=dry_run)
    if name:
        results = [_svc().imports.sync_import(name, options)]
    else:
        results = _svc().imports.sync_all_imports(options)

    if as_json:
        _echo_json([r.to_dict() for r in results])
    else:
        if not results:
            click.echo("没有需要同步的导入。")
        for r in results:
            _print_result(r, dry_run=dry_run, verbose=bool(name))

    if any(not r.success for r in results):
        sys.exit(1)


@import_group.command(name="remove")
@click.argument("name")
@click.option("--delete-files", is_flag=True, help="同时删除已导入的文件")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def import_remove(name: str, delete_files: bool, as_json: bool) -> None:
    """移除导入配置"""
    result = _svc().imports.remove_import(name, delete_files=delete_files)
    if as_json:
        _echo_json(result)
        return
    click.echo(f"导入已移除: {name}" + ("（文件已删除）" if delete_files else ""))


@import_group.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def import_list(as_json: bool) -> None:
    """列出所有导入"""
    items = _svc().imports.list_imports()
    if as_json:
        _echo_json([
            {
                "config": item["config"].to_dict(),
                "metadata": item["metadata"].to_dict() if item["metadata"] else None,
            }
            for item in items
        ])
        return
    if not items:
        click.echo("没有已配置的导入。")
        return
    for item in items:
        cfg, meta = item["config"], item["metadata"]
        last_sync = meta.last_sync if meta else "-"
        mode = "link" if cfg.link else str(cfg.kind)
        click.echo(f"  {cfg.name:24s} [{mode:5s}] {cfg.source}  (最近同步: {last_sync})")


@import_group.command(name="show")
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def import_show(name: str, as_json: bool) -> None:
    """查看单个导入的配置与元数据"""
    item = _svc().imports.get_import(name)
    if item is None:
        raise ImportSourceError(f"导入不存在: {name}", ImportErrorCode.SOURCE_NOT_FOUND)

    cfg, meta = item["config"], item["metadata"]
    if as_json:
        _echo_json({"config": cfg.to_dict(), "metadata": meta.to_dict() if meta else None})
        return

    click.echo(f"名称:     {cfg.name}")
    click.echo(f"来源:     {cfg.source}")
    click.echo(f"类型:     {cfg.kind}{' (link)' if cfg.link else ''}")
    if cfg.ref:
        click.echo(f"ref:      {cfg.ref}")
    if meta is None:
        click.echo("元数据:   无")
        return
    if meta.commit:
        click.echo(f"commit:   {meta.commit}")
    if meta.version:
        click.echo(f"version:  {meta.version}")
    click.echo(f"导入时间: {meta.imported_at}")
    click.echo(f"最近同步: {meta.last_sync}")
    click.echo(f"文件数:   {len(meta.files)}")
