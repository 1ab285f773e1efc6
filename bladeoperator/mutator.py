"""Admission webhook that injects the fuse sidecar into annotated pods."""

from __future__ import annotations

import copy
import json
import logging
import posixpath
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from . import version
from .runtime import RuntimeConfig

logger = logging.getLogger(__name__)

SIDECAR_NAME = "chaosblade-fuse"
FUSE_SERVER_PORT_NAME = "fuse-port"
INJECT_VOLUME_ANNOTATION = "chaosblade/inject-volume"
INJECT_SUBPATH_ANNOTATION = "chaosblade/inject-volume-subpath"

_HOST_TO_CONTAINER = "HostToContainer"
_BIDIRECTIONAL = "Bidirectional"


class MutationError(Exception):
    """Raised when a pod asks for injection but cannot be mutated."""


@dataclass
class AdmissionResponse:
    """Answer to an admission request."""

    allowed: bool
    code: int = 200
    message: str = ""
    uid: str = ""
    patches: list[dict[str, Any]] = field(default_factory=list)

    @property
    def patch_type(self) -> str | None:
        return "JSONPatch" if self.patches else None


def _clean(path: str) -> str:
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    return _clean(joined) if joined else ""


def _dir(path: str) -> str:
    return _clean(path[: path.rfind("/") + 1])


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped[stripped.rfind("/") + 1 :]


def _escape(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _diff(old: Any, new: Any, path: str, ops: list[dict[str, Any]]) -> None:
    if type(old) is type(new) and old == new:
        return
    if isinstance(old, dict) and isinstance(new, dict):
        for key in old:
            if key not in new:
                ops.append({"op": "remove", "path": f"{path}/{_escape(key)}"})
        for key, value in new.items():
            child = f"{path}/{_escape(key)}"
            if key in old:
                _diff(old[key], value, child, ops)
            else:
                ops.append({"op": "add", "path": child, "value": copy.deepcopy(value)})
        return
    if isinstance(old, list) and isinstance(new, list) and len(old) == len(new):
        for index, (before, after) in enumerate(zip(old, new)):
            _diff(before, after, f"{path}/{index}", ops)
        return
    ops.append({"op": "replace", "path": path, "value": copy.deepcopy(new)})


def get_sidecar_image(config: RuntimeConfig) -> str:
    """Image of the fuse sidecar: the configured one, else the tool image."""
    if config.fuse_sidecar_image:
        return config.fuse_sidecar_image
    return f"{config.image_repo()}:{version.VERSION}"


class Mutator:
    """Adds the fuse sidecar to pods that carry the inject-volume annotations."""

    def __init__(self, config: RuntimeConfig | None = None) -> None:
        self.config = config if config is not None else RuntimeConfig()

    def mutate_pod(self, pod: dict[str, Any]) -> dict[str, Any]:
        """Inject the sidecar into pod in place and return it.

        Raises MutationError when the target volume mount is missing or unsuitable.
        """
        metadata = pod.get("metadata") or {}
        name = metadata.get("name", "")
        annotations = metadata.get("annotations")
        if annotations is None:
            return pod
        volume_name = annotations.get(INJECT_VOLUME_ANNOTATION)
        if volume_name is None:
            logger.info("pod %s has no %s annotation", name, INJECT_VOLUME_ANNOTATION)
            return pod
        sub_path = annotations.get(INJECT_SUBPATH_ANNOTATION)
        if sub_path is None:
            logger.info("pod %s has no %s annotation", name, INJECT_SUBPATH_ANNOTATION)
            return pod

        spec = pod.setdefault("spec", {})
        containers = spec.get("containers") or []
        if any(container.get("name") == SIDECAR_NAME for container in containers):
            logger.info("sidecar has been injected into pod %s", name)
            return pod
        if not containers:
            raise MutationError("pod has no containers")

        target: dict[str, Any] | None = None
        for mount in containers[0].get("volumeMounts") or []:
            if mount.get("name") != volume_name:
                continue
            propagation = mount.get("mountPropagation")
            if propagation is None:
                raise MutationError(
                    "target volume mount propagation must be HostToContainer or Bidirectional"
                )
            if propagation not in (_HOST_TO_CONTAINER, _BIDIRECTIONAL):
                raise MutationError("target volume mount propagation is not support")
            target = dict(mount, mountPropagation=_BIDIRECTIONAL)

        if target is None or not target.get("name"):
            raise MutationError(f"pod has no volume mount {volume_name}")

        mount_path = target.get("mountPath", "")
        mount_point = _join(mount_path, sub_path)
        original = _join(mount_path, f"fuse-{sub_path}")
        logger.info(
            "Get matched pod mountPoint=%s mountPath=%s podName=%s", mount_point, mount_path, name
        )
        if mount_point == mount_path:
            original = _join(_dir(mount_path), f"fuse-{_base(mount_path)}")

        port = self.config.fuse_server_port
        sidecar = {
            "name": SIDECAR_NAME,
            "image": get_sidecar_image(self.config),
            "imagePullPolicy": "Always",
            "command": ["/opt/chaosblade/bin/chaos_fuse"],
            "args": [
                f"--address=:{port}",
                f"--mountpoint={mount_point}",
                f"--original={original}",
            ],
            "resources": {
                "requests": {"cpu": "100m", "memory": "50Mi"},
                "limits": {"cpu": "100m", "memory": "50Mi"},
            },
            "ports": [{"name": FUSE_SERVER_PORT_NAME, "containerPort": port}],
            "securityContext": {"privileged": True, "runAsUser": 0},
            "volumeMounts": [target],
        }
        spec["containers"] = [sidecar, containers[0]]
        return pod

    def handle(self, request: Mapping[str, Any]) -> AdmissionResponse:
        """Answer an admission request whose "object" holds the pod."""
        uid = str(request.get("uid", "")) if isinstance(request, Mapping) else ""
        raw = request.get("object") if isinstance(request, Mapping) else None
        pod: Any = raw
        if isinstance(raw, (str, bytes, bytearray)):
            try:
                pod = json.loads(raw)
            except ValueError as exc:
                return AdmissionResponse(allowed=False, code=400, message=str(exc), uid=uid)
        if not isinstance(pod, dict):
            return AdmissionResponse(
                allowed=False, code=400, message="cannot decode pod from request", uid=uid
            )
        patched = copy.deepcopy(pod)
        try:
            self.mutate_pod(patched)
        except MutationError as exc:
            logger.error("mutate pod failed: %s", exc)
            return AdmissionResponse(allowed=False, code=500, message=str(exc), uid=uid)
        patches: list[dict[str, Any]] = []
        _diff(pod, patched, "", patches)
        return AdmissionResponse(allowed=True, uid=uid, patches=patches)