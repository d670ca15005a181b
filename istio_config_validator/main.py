#!/usr/bin/env python3
"""
Istio 配置校验工具 - 命令行入口

从文件、目录或集群读取配置对象，逐个校验并输出结果。
退出码: 0 全部合法, 1 存在不合法的对象, 2 加载失败
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from istio_config_validator.config import OUTPUT_FORMATS, get_settings, load_settings_from_file
from istio_config_validator.errors import ConfigLoadError, error_messages
from istio_config_validator.loader import (
    load_configs_from_dir,
    load_configs_from_file,
    load_mesh_config,
    load_proxy_config,
    mesh_config_as_config,
    proxy_config_as_config,
)
from istio_config_validator.registry import Config, validate_config

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_LOAD_ERROR = 2


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """配置日志（输出到 stderr，避免与校验结果混在一起）"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=handlers,
        force=True,
    )


@dataclass
class ValidationReport:
    """单个配置对象的校验结果"""
    kind: str
    name: str
    namespace: str
    source: str
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self):
        return {
            "kind": self.kind,
            "name": self.name,
            "namespace": self.namespace,
            "source": self.source,
            "valid": self.valid,
            "errors": self.errors,
        }


def validate_all(configs: List[Config]) -> List[ValidationReport]:
    logger = logging.getLogger(__name__)
    reports = []
    for config in configs:
        err = validate_config(config)
        report = ValidationReport(
            kind=config.kind.value,
            name=config.name,
            namespace=config.namespace,
            source=config.source,
            errors=error_messages(err),
        )
        if not report.valid:
            logger.info(f"{config.key} 校验失败: {len(report.errors)} 个错误")
        reports.append(report)
    return reports


def render_text(reports: List[ValidationReport]) -> str:
    lines = []
    for report in reports:
        target = f"{report.kind} {report.namespace}/{report.name}" if report.namespace else f"{report.kind} {report.name}"
        if report.valid:
            lines.append(f"OK      {target}")
        else:
            lines.append(f"INVALID {target} ({report.source})")
            lines.extend(f"    - {msg}" for msg in report.errors)
    invalid = sum(1 for r in reports if not r.valid)
    lines.append(f"{len(reports)} checked, {invalid} invalid")
    return "\n".join(lines)


def render_json(reports: List[ValidationReport]) -> str:
    return json.dumps([r.to_dict() for r in reports], indent=2, ensure_ascii=False)


def collect_configs(args, settings) -> List[Config]:
    """
    按命令行参数收集待校验对象

    Raises:
        ConfigLoadError: 任一输入无法加载
    """
    configs: List[Config] = []
    for path in args.file or []:
        configs.extend(load_configs_from_file(path, settings.default_namespace, settings.skip_unknown_kinds))
    for directory in args.dir or []:
        configs.extend(load_configs_from_dir(directory, settings.default_namespace, settings.skip_unknown_kinds))
    if args.mesh_config:
        configs.append(mesh_config_as_config(load_mesh_config(args.mesh_config), source=args.mesh_config))
    if args.proxy_config:
        configs.append(proxy_config_as_config(load_proxy_config(args.proxy_config), source=args.proxy_config))
    if args.cluster:
        # kubernetes 客户端只在需要时导入
        from istio_config_validator.cluster import ClusterSource
        source = ClusterSource(kubeconfig=settings.kubeconfig, context=settings.context)
        configs.extend(source.list_configs(settings.default_namespace))
        if source.load_errors:
            raise ConfigLoadError(f"{len(source.load_errors)} cluster objects could not be loaded")
    return configs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="istio-config-validate",
        description="Istio 配置校验工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  # 校验单个清单文件
  istio-config-validate -f virtual-service.yaml

  # 递归校验目录下所有 YAML 文件，输出 JSON
  istio-config-validate -d manifests/ --output json

  # 校验网格配置
  istio-config-validate --mesh-config mesh.yaml

  # 校验集群中已有的 Istio 资源
  istio-config-validate --cluster --context prod
        """
    )

    parser.add_argument("-f", "--file", action="append", help="清单文件，可重复指定")
    parser.add_argument("-d", "--dir", action="append", help="清单目录（递归查找 *.yaml / *.yml），可重复指定")
    parser.add_argument("--mesh-config", type=str, help="网格配置文件（覆盖在默认网格配置上）")
    parser.add_argument("--proxy-config", type=str, help="代理配置文件（覆盖在默认代理配置上）")
    parser.add_argument("--cluster", action="store_true", help="从当前 Kubernetes 集群读取 Istio 资源")
    parser.add_argument("--kubeconfig", type=str, help="kubeconfig 路径")
    parser.add_argument("--context", type=str, help="kubeconfig 上下文")
    parser.add_argument("--output", choices=OUTPUT_FORMATS, help="输出格式 (默认: text)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别 (默认: INFO)"
    )
    parser.add_argument("--log-file", type=str, help="日志文件路径")
    parser.add_argument("--settings", type=str, help="配置文件路径 (JSON格式)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数，返回退出码"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.file or args.dir or args.mesh_config or args.proxy_config or args.cluster):
        parser.error("nothing to validate: use -f, -d, --mesh-config, --proxy-config or --cluster")

    try:
        settings = load_settings_from_file(args.settings) if args.settings else get_settings()
    except (OSError, ValueError, TypeError) as e:
        print(f"error: invalid settings file {args.settings}: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR
    # 命令行参数优先于配置文件
    for name in ("output", "log_level", "log_file", "kubeconfig", "context"):
        value = getattr(args, name)
        if value is not None:
            setattr(settings, name, value)

    setup_logging(settings.log_level, settings.log_file)
    logger = logging.getLogger(__name__)

    try:
        configs = collect_configs(args, settings)
    except ConfigLoadError as e:
        logger.error(f"加载配置失败: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_LOAD_ERROR

    reports = validate_all(configs)
    if settings.output == "json":
        print(render_json(reports))
    else:
        print(render_text(reports))

    if any(not r.valid for r in reports):
        return EXIT_INVALID
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
