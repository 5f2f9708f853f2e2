"""配方查询命令：list, info, deps, caveats"""

from __future__ import annotations

import click

from tapbuild.cli import _orchestrator, handle_errors
from tapbuild.core.models import BuildOptions
from tapbuild.pipeline import InstallPlan


def register(main: click.Group) -> None:
    """注册配方查询命令"""
    main.add_command(list_formulae)
    main.add_command(info)
    main.add_command(deps)
    main.add_command(caveats)


@click.command(name="list")
@handle_errors
def list_formulae() -> None:
    """列出可用配方"""
    items = _orchestrator().c.registry.list_all()
    if not items:
        click.echo("没有可用的配方。")
        return
    for f in items:
        click.echo(f"  {f['name']:16s} {f['version']:10s} {f['build_system']:6s} {f['desc']}")


@click.command()
@click.argument("formula")
@handle_errors
def info(formula: str) -> None:
    """显示配方详情"""
    orch = _orchestrator()
    f = orch.c.registry.require(formula)
    click.echo(f"{f.name}: stable {f.pkg_version()}{', HEAD' if f.head else ''}")
    if f.desc:
        click.echo(f.desc)
    if f.homepage:
        click.echo(f.homepage)
    if f.keg_only:
        click.echo(f"keg-only: {f.keg_only}")
    receipt = orch.c.receipts.load(f.name)
    if receipt is not None:
        click.echo(f"已安装: {receipt.version} ({' '.join(receipt.used_options) or '默认选项'})")
    else:
        click.echo("未安装")

    click.echo("==> Dependencies")
    for d in f.dependencies:
        tags = f" [{', '.join(d.tags)}]" if d.tags else ""
        cond = f" (with {d.when_option})" if d.when_option else ""
        click.echo(f"  {d.name}{tags}{cond}")

    click.echo("==> Options")
    defaults = BuildOptions.defaults(f)
    for opt in f.options:
        flag = f"--without-{opt.name}" if defaults.with_(opt.name) else f"--with-{opt.name}"
        click.echo(f"  {flag:24s} {opt.description}")


@click.command()
@click.argument("formula")
@click.option(
    "--include-build/--runtime-only", default=True,
    help="是否包含构建期依赖",
)
@click.option("--with", "with_", multiple=True, help="启用选项 NAME")
@click.option("--without", "without", multiple=True, help="禁用选项 NAME")
@handle_errors
def deps(
    formula: str, include_build: bool, with_: tuple[str, ...], without: tuple[str, ...],
) -> None:
    """列出 FORMULA 在当前主机与选项下的依赖"""
    options = [f"with-{n}" for n in with_] + [f"without-{n}" for n in without]
    orch = _orchestrator()
    f = orch.c.registry.require(formula)
    ctx = orch.context_for(InstallPlan(formula=formula, options=options), f)
    closure = orch.c.resolver.resolve(f, ctx.options, ctx.host)
    for name in closure.names(include_build=include_build):
        click.echo(name)


@click.command()
@click.argument("formula")
@click.option("--HEAD", "head", is_flag=True, help="开发分支")
@handle_errors
def caveats(formula: str, head: bool) -> None:
    """显示安装注意事项"""
    text = _orchestrator().caveats(InstallPlan(formula=formula, head=head))
    click.echo(text.rstrip("\n"))
