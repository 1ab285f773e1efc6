import dataclasses

import pytest

from bladeoperator import version
from bladeoperator.runtime import (
    RuntimeConfig,
    build_parser,
    image_repo_for_aliyun,
    image_repo_for_community,
    parse_config,
)


def test_defaults_from_empty_argv():
    config = parse_config([])
    assert config.log_level == "info"
    assert config.reconcile_count == 20
    assert config.chaosblade_image_repository == "chaosbladeio/chaosblade-tool"
    assert config.chaosblade_image_pull_policy == "IfNotPresent"
    assert config.remove_blade_interval == "72h"
    assert config.fuse_server_port == 65534
    assert config.webhook_port == 9443
    assert config.daemonset_enable is False
    assert config.webhook_enable is False
    assert config.chaosblade_version == version.VERSION


def test_parsed_defaults_match_dataclass_defaults():
    assert parse_config([]) == RuntimeConfig()


def test_flags_set_values():
    config = parse_config(
        ["--reconcile-count", "5", "--qps", "7.5", "--webhook-port=8443", "--log-level", "debug"]
    )
    assert (config.reconcile_count, config.qps, config.webhook_port, config.log_level) == (
        5, 7.5, 8443, "debug",
    )


@pytest.mark.parametrize(
    "argv, expected",
    [
        (["--daemonset-enable"], True),
        (["--daemonset-enable=true"], True),
        (["--daemonset-enable=false"], False),
        (["--daemonset-enable=0"], False),
    ],
)
def test_bool_flags(argv, expected):
    assert parse_config(argv).daemonset_enable is expected


def test_bad_int_exits():
    with pytest.raises(SystemExit):
        parse_config(["--reconcile-count", "many"])


def test_bad_bool_exits():
    with pytest.raises(SystemExit):
        parse_config(["--webhook-enable=maybe"])


def test_parser_rejects_abbreviation():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--webhook-en"])


def test_aliyun_public_region():
    assert image_repo_for_aliyun("cn-public", "prod") == (
        "registry.cn-hangzhou.aliyuncs.com/ahascr-public/chaosblade-tool"
    )
    assert image_repo_for_aliyun("cn-public", "") == (
        "registry.cn-hangzhou.aliyuncs.com/ahas-public/chaosblade-tool"
    )


def test_aliyun_private_region_contains_region():
    prod = image_repo_for_aliyun("cn-shanghai", "prod")
    other = image_repo_for_aliyun("cn-shanghai", "test")
    assert prod.startswith("registry-vpc.cn-shanghai.")
    assert prod.endswith("/ahascr/chaosblade-tool")
    assert other.endswith("/ahas/chaosblade-tool")


def test_community_repo_follows_config():
    config = parse_config(["--chaosblade-image-repository", "my/repo"])
    assert image_repo_for_community(config) == "my/repo"
    assert dataclasses.replace(config, product="community").image_repo() == "my/repo"


def test_ahas_product_uses_aliyun_repo():
    config = RuntimeConfig(product="ahas", aliyun_region_id="cn-public", aliyun_environment="prod")
    assert config.image_repo() == image_repo_for_aliyun("cn-public", "prod")


def test_unknown_product_raises():
    with pytest.raises(ValueError):
        RuntimeConfig(product="nobody").image_repo()