"""Manifests and deployment of the chaosblade tool daemonset."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from .runtime import DAEMONSET_POD_NAME, RuntimeConfig

logger = logging.getLogger(__name__)

OPERATOR_DEPLOYMENT_NAME = "chaosblade-operator"


class AlreadyExistsError(Exception):
    """Raised by a client when the object to create already exists."""


class KubeClient(Protocol):
    def get(self, api_version: str, kind: str, namespace: str, name: str) -> dict[str, Any]: ...

    def create(self, obj: dict[str, Any]) -> Any: ...


def create_owner_references(deployment: dict[str, Any]) -> list[dict[str, Any]]:
    """Owner references that make the operator deployment the controller."""
    metadata = deployment.get("metadata") or {}
    return [
        {
            "apiVersion": deployment.get("apiVersion", ""),
            "kind": deployment.get("kind", ""),
            "name": metadata.get("name", ""),
            "uid": metadata.get("uid", ""),
            "controller": True,
        }
    ]


def create_affinity() -> dict[str, Any]:
    """Keep the tool off virtual-kubelet nodes."""
    return {
        "nodeAffinity": {
            "requiredDuringSchedulingIgnoredDuringExecution": {
                "nodeSelectorTerms": [
                    {
                        "matchExpressions": [
                            {"key": "type", "operator": "NotIn", "values": ["virtual-kubelet"]}
                        ]
                    }
                ]
            }
        }
    }


def create_container(config: RuntimeConfig) -> dict[str, Any]:
    """The privileged chaosblade tool container."""
    return {
        "name": DAEMONSET_POD_NAME,
        "image": f"{config.image_repo()}:{config.chaosblade_version}",
        "imagePullPolicy": config.chaosblade_image_pull_policy,
        "volumeMounts": [
            {"name": "docker-socket", "mountPath": "/var/run/docker.sock"},
            {"name": "chaosblade-db-volume", "mountPath": "/opt/chaosblade/chaosblade.dat"},
            {"name": "hosts", "mountPath": "/etc/hosts"},
        ],
        "securityContext": {"privileged": True},
    }


def create_pod_spec(config: RuntimeConfig) -> dict[str, Any]:
    """Pod spec running on the host network and PID namespace."""
    return {
        "containers": [create_container(config)],
        "affinity": create_affinity(),
        "dnsPolicy": "ClusterFirstWithHostNet",
        "hostNetwork": True,
        "hostPID": True,
        "tolerations": [{"effect": "NoSchedule", "operator": "Exists"}],
        "terminationGracePeriodSeconds": 30,
        "schedulerName": "default-scheduler",
        "restartPolicy": "Always",
        "volumes": [
            {"name": "docker-socket", "hostPath": {"path": "/var/run/docker.sock"}},
            {
                "name": "chaosblade-db-volume",
                "hostPath": {"path": "/var/run/chaosblade.dat", "type": "FileOrCreate"},
            },
            {"name": "hosts", "hostPath": {"path": "/etc/hosts"}},
        ],
    }


def create_pod_template_spec(config: RuntimeConfig) -> dict[str, Any]:
    """Pod template of the daemonset."""
    return {
        "metadata": {"name": DAEMONSET_POD_NAME, "labels": dict(config.daemonset_pod_labels)},
        "spec": create_pod_spec(config),
    }


def create_daemonset_spec(config: RuntimeConfig) -> dict[str, Any]:
    """Daemonset spec with a rolling update strategy."""
    return {
        "selector": {"matchLabels": dict(config.daemonset_pod_labels)},
        "template": create_pod_template_spec(config),
        "minReadySeconds": 5,
        "updateStrategy": {"type": "RollingUpdate"},
    }


def create_daemonset(
    config: RuntimeConfig, namespace: str, owner_references: list[dict[str, Any]]
) -> dict[str, Any]:
    """The complete daemonset manifest."""
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": DAEMONSET_POD_NAME,
            "namespace": namespace,
            "labels": dict(config.daemonset_pod_labels),
            "ownerReferences": owner_references,
        },
        "spec": create_daemonset_spec(config),
    }


def deploy_chaosblade_tool(client: KubeClient, config: RuntimeConfig, namespace: str) -> bool:
    """Create the tool daemonset owned by the operator deployment.

    Returns False when it already exists, True when it was created.
    """
    try:
        deployment = client.get("apps/v1", "Deployment", namespace, OPERATOR_DEPLOYMENT_NAME)
    except Exception:
        logger.exception("cannot get chaosblade-operator deployment from apps/v1")
        raise
    daemonset = create_daemonset(config, namespace, create_owner_references(deployment))
    try:
        client.create(daemonset)
    except AlreadyExistsError:
        logger.info("chaosblade tool exits, skip to deploy")
        return False
    return True