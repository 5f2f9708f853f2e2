"""安装相关命令：install, flags, test, post-install"""

from __future__ import annotations

import click

from tapbuild.cli import _orchestrator, _raw_options, handle_errors, option_flags
from tapbuild.pipeline import InstallPlan, InstallReport


def register(main: click.Group) -> None:
    """注册安装相关命令"""
    main.add_command(install)
    main.add_command(flags)
    main.add_command(run_test)
    main.add_command(post_install)


def _echo_warnings(report: InstallReport) -> None:
    for w in report.warnings:
        click.echo(f"Warning: {w}", err=True)


@click.command()
@click.argument("formula")
@option_flags
@click.option("--verbose", "-v", is_flag=True, help="向构建系统传递 VERBOSE=1")
@click.option("--keep-tmp", is_flag=True, help="保留构建目录")
@click.option("--ignore-dependencies", is_flag=True, help="跳过依赖与环境要求检查")
@click.option("--skip-test", is_flag=True, help="跳过安装后冒烟测试")
@handle_errors
def install(
    formula: str, head: bool, bottle: bool, with_: tuple[str, ...],
    without: tuple[str, ...], option: tuple[str, ...], verbose: bool,
    keep_tmp: bool, ignore_dependencies: bool, skip_test: bool,
) -> None:
    """从源码构建并安装 FORMULA"""
    plan = InstallPlan(
        formula=formula,
        options=_raw_options(with_, without, option),
        head=head, bottle=bottle, verbose=verbose, keep_tmp=keep_tmp,
        ignore_dependencies=ignore_dependencies, skip_test=skip_test,
    )
    report = _orchestrator().run(plan)
    _echo_warnings(report)
    click.echo(f"已安装: {formula} -> {report.context.layout.prefix}")
    if report.caveats:
        click.echo("==> Caveats")
        click.echo(report.caveats.rstrip("\n"))


@click.command()
@click.argument("formula")
@option_flags
@handle_errors
def flags(
    formula: str, head: bool, bottle: bool, with_: tuple[str, ...],
    without: tuple[str, ...], option: tuple[str, ...],
) -> None:
    """输出 FORMULA 的构建标志（dry run，每行一项）"""
    plan = InstallPlan(
        formula=formula, options=_raw_options(with_, without, option),
        head=head, bottle=bottle,
    )
    report = _orchestrator().configure(plan)
    for flag in report.flags:
        click.echo(flag)


@click.command(name="test")
@click.argument("formula")
@click.option("--HEAD", "head", is_flag=True, help="测试开发分支构建")
@handle_errors
def run_test(formula: str, head: bool) -> None:
    """对已安装的 FORMULA 执行冒烟测试"""
    report = _orchestrator().test(InstallPlan(formula=formula, head=head))
    _echo_warnings(report)
    click.echo(f"测试 {formula}: {report.verify.status if report.verify else 'skipped'}")


@click.command(name="post-install")
@click.argument("formula")
@handle_errors
def post_install(formula: str) -> None:
    """对已安装的 FORMULA 重新执行安装后修补"""
    report = _orchestrator().post_install(InstallPlan(formula=formula))
    step = report.step("post_install") or {}
    click.echo(
        f"修补完成: {formula} ({len(step.get('patched', []))} 个文件, "
        f"{step.get('rpaths_added', 0)} 条 rpath)"
    )
