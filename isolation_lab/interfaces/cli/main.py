"""命令行入口 - 运行事务隔离异常场景

用法:
    isolation-lab
    isolation-lab --scenario phantom_read --scenario lost_update
    isolation-lab --isolation-level serializable
    isolation-lab --database-url memory:// --log-format json
    isolation-lab --list

退出码:
    0  所有选中的场景完整执行
    1  有场景中止，或重建表失败
    2  参数错误或无法连接数据库
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from typing import Any

from isolation_lab.application.services.scenario_catalog import ScenarioCatalog, default_catalog
from isolation_lab.application.services.scenario_suite import ScenarioSuite, SuiteResult
from isolation_lab.config import Settings, settings
from isolation_lab.domain.entities.scenario_report import ScenarioReport
from isolation_lab.domain.exceptions import EngineConnectionError, SeedError, UnknownScenarioError
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel
from isolation_lab.infrastructure.bootstrap import connect_engine
from isolation_lab.infrastructure.observability import configure_logging

EXIT_OK = 0
EXIT_SCENARIO_FAILED = 1
EXIT_USAGE = 2


def _isolation_level(raw: str) -> IsolationLevel:
    try:
        return IsolationLevel.parse(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser(catalog: ScenarioCatalog) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="isolation-lab",
        description="按固定交错顺序驱动并发事务，观察隔离级别异常",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scenario",
        action="append",
        choices=sorted(catalog.names()),
        help="要运行的场景（可重复，默认运行全部）",
    )
    parser.add_argument("--list", action="store_true", help="列出可用场景后退出")
    parser.add_argument(
        "--isolation-level",
        type=_isolation_level,
        help="覆盖所有参与事务的隔离级别，如 read-committed、serializable",
    )
    parser.add_argument("--fail-fast", action="store_true", default=None, help="第一个场景中止后停止")
    parser.add_argument("--database-url", help="数据库连接 URL（memory:// 使用进程内引擎）")
    parser.add_argument("--log-level", help="日志级别 (默认: INFO)")
    parser.add_argument("--log-format", choices=["json", "text"], help="日志格式")
    return parser


def resolve_settings(args: argparse.Namespace, base: Settings) -> Settings:
    overrides: dict[str, Any] = {
        "scenarios": args.scenario,
        "isolation_level": args.isolation_level,
        "fail_fast": args.fail_fast,
        "database_url": args.database_url,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    return base.model_copy(update={key: value for key, value in overrides.items() if value is not None})


def format_report(report: ScenarioReport) -> str:
    if not report.succeeded:
        status = "ABORTED"
    elif report.anomaly_observed:
        status = "OBSERVED"
    else:
        status = "NOT SEEN"
    levels = ", ".join(sorted({level or "default" for level in report.isolation_levels.values()}))
    observed = " ".join(f"{key}={value}" for key, value in report.observations.items())
    line = f"  [{status:<8}] {report.scenario:<20} {levels:<18} {observed}"
    if report.failed_step:
        line += f"\n             failed at {report.failed_step}: {report.error}"
    if report.verification_error:
        line += f"\n             verification failed: {report.verification_error}"
    return line


def print_summary(result: SuiteResult, title: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"{title} 事务隔离异常报告")
    print(f"{'=' * 60}")
    for report in result.reports:
        print(format_report(report))
    aborted = sum(1 for report in result.reports if not report.succeeded)
    print(f"{'=' * 60}")
    print(f"场景: {len(result.reports)}, 中止: {aborted}")
    if result.stopped_early:
        print("fail-fast: 剩余场景未执行")


def main(argv: Sequence[str] | None = None) -> int:
    catalog = default_catalog()
    parser = build_parser(catalog)
    args = parser.parse_args(argv)

    if args.list:
        for schedule in catalog:
            print(f"{schedule.name:<20} {schedule.description}")
        return EXIT_OK

    config = resolve_settings(args, settings)
    configure_logging(config.log_level, config.log_format, config.log_file)

    names = config.scenarios or None
    try:
        catalog.select(names)
    except UnknownScenarioError as exc:
        print(f"错误: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        engine = connect_engine(config)
    except EngineConnectionError:
        return EXIT_USAGE

    try:
        result = ScenarioSuite(engine, catalog).run(
            names,
            fail_fast=config.fail_fast,
            isolation_override=config.isolation_level,
        )
    except SeedError:
        return EXIT_SCENARIO_FAILED
    finally:
        engine.dispose()

    print_summary(result, config.app_name)
    return EXIT_OK if result.succeeded else EXIT_SCENARIO_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
