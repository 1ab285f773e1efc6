"""Runtime configuration of the operator: flags, products and image repositories."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field

from . import version

OPERATOR_CHAOSBLADE_PATH = "/opt/chaosblade"
OPERATOR_CHAOSBLADE_BIN = "/opt/chaosblade/bin"
OPERATOR_CHAOSBLADE_LIB = "/opt/chaosblade/lib"
OPERATOR_CHAOSBLADE_YAML = "/opt/chaosblade/yaml"
OPERATOR_CHAOSBLADE_BLADE = "/opt/chaosblade/blade"

DAEMONSET_POD_NAME = "chaosblade-tool"
DEFAULT_REMOVE_BLADE_INTERVAL = "72h"
DAEMONSET_POD_LABELS = {"app": "chaosblade-tool"}

DEFAULT_IMAGE_REPOSITORY = "chaosbladeio/chaosblade-tool"

AHAS = "ahas"
COMMUNITY = "community"
_PROD_ENV = "prod"
_PUBLIC_REGION = "cn-public"

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass
class RuntimeConfig:
    """All settings the operator reads from its command line."""

    log_level: str = "info"
    reconcile_count: int = 20
    qps: float = 20.0
    aliyun_region_id: str = ""
    aliyun_environment: str = ""
    chaosblade_version: str = version.VERSION
    chaosblade_image_repository: str = DEFAULT_IMAGE_REPOSITORY
    chaosblade_image_pull_policy: str = "IfNotPresent"
    daemonset_enable: bool = False
    remove_blade_interval: str = DEFAULT_REMOVE_BLADE_INTERVAL
    fuse_sidecar_image: str = ""
    fuse_server_port: int = 65534
    webhook_port: int = 9443
    webhook_enable: bool = False
    product: str = version.PRODUCT
    daemonset_pod_labels: dict[str, str] = field(
        default_factory=lambda: dict(DAEMONSET_POD_LABELS)
    )

    def image_repo(self) -> str:
        """Image repository of the chaosblade tool for the configured product."""
        if self.product == AHAS:
            return image_repo_for_aliyun(self.aliyun_region_id, self.aliyun_environment)
        if self.product == COMMUNITY:
            return image_repo_for_community(self)
        raise ValueError(f"unknown product {self.product!r}")


def image_repo_for_aliyun(region_id: str, environment: str) -> str:
    """Image repository used on the cloud provider for a region and environment."""
    if region_id == _PUBLIC_REGION:
        if environment == _PROD_ENV:
            return "registry.cn-hangzhou.aliyuncs.com/ahascr-public/chaosblade-tool"
        return "registry.cn-hangzhou.aliyuncs.com/ahas-public/chaosblade-tool"
    if environment == _PROD_ENV:
        return f"registry-vpc.{region_id}.aliyuncs.com/ahascr/chaosblade-tool"
    return f"registry-vpc.{region_id}.aliyuncs.com/ahas/chaosblade-tool"


def image_repo_for_community(config: RuntimeConfig) -> str:
    """Image repository used by the community product."""
    return config.chaosblade_image_repository


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _add_bool(parser: argparse.ArgumentParser, flag: str, dest: str, help_text: str) -> None:
    parser.add_argument(
        flag, dest=dest, nargs="?", const=True, default=False, type=_parse_bool, help=help_text
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the parser for every operator flag."""
    parser = argparse.ArgumentParser(prog="operator", allow_abbrev=False)
    parser.add_argument(
        "--log-level", default="info",
        help="Log level, such as panic|fatal|error|warn|info|debug|trace",
    )
    parser.add_argument(
        "--reconcile-count", dest="reconcile_count", type=int, default=20,
        help="Max concurrent reconciles count, default value is 20",
    )
    parser.add_argument("--qps", type=float, default=20.0, help="qps of kubernetes client")
    parser.add_argument(
        "--aliyun-region-id", dest="aliyun_region_id", default="",
        help="Region id for cloud provider",
    )
    parser.add_argument(
        "--aliyun-environment", dest="aliyun_environment", default="",
        help="Environment for cloud provider",
    )
    parser.add_argument(
        "--chaosblade-version", dest="chaosblade_version", default=version.VERSION,
        help="Chaosblade tool version",
    )
    parser.add_argument(
        "--chaosblade-image-repository", dest="chaosblade_image_repository",
        default=DEFAULT_IMAGE_REPOSITORY, help="Image repository of chaosblade tool",
    )
    parser.add_argument(
        "--chaosblade-image-pull-policy", dest="chaosblade_image_pull_policy",
        default="IfNotPresent", help="Pulling policy of chaosblade image",
    )
    _add_bool(
        parser, "--daemonset-enable", "daemonset_enable",
        "Deploy chaosblade daemonset to resolve chaos experiment environment of network",
    )
    parser.add_argument(
        "--remove-blade-interval", dest="remove_blade_interval",
        default=DEFAULT_REMOVE_BLADE_INTERVAL,
        help="Periodically clean up blade state is destroying",
    )
    parser.add_argument(
        "--fuse-sidecar-image", dest="fuse_sidecar_image", default="",
        help="Fuse sidecar image",
    )
    parser.add_argument(
        "--fuse-server-port", dest="fuse_server_port", type=int, default=65534,
        help="Fuse server port",
    )
    parser.add_argument(
        "--webhook-port", dest="webhook_port", type=int, default=9443,
        help="The port on which to serve HTTPS.",
    )
    _add_bool(parser, "--webhook-enable", "webhook_enable", "Whether to enable webhook")
    return parser


def parse_config(argv: list[str] | None = None) -> RuntimeConfig:
    """Parse command-line flags into a RuntimeConfig."""
    namespace = build_parser().parse_args(argv)
    return RuntimeConfig(**vars(namespace))