"""Resource types of the chaosblade.io/v1alpha1 API group."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

GROUP = "chaosblade.io"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP}/{VERSION}"
KIND = "ChaosBlade"
LIST_KIND = "ChaosBladeList"

POD_KIND = "pod"
CONTAINER_KIND = "container"
NODE_KIND = "node"

SUCCESS_STATE = "Success"
ERROR_STATE = "Error"
DESTROYED_STATE = "Destroyed"


class ClusterPhase(str, Enum):
    """Lifecycle phase of a ChaosBlade resource."""

    INITIAL = ""
    INITIALIZED = "Initialized"
    RUNNING = "Running"
    UPDATING = "Updating"
    DESTROYING = "Destroying"
    DESTROYED = "Destroyed"
    ERROR = "Error"


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class FlagSpec:
    """A named experiment flag with its values."""

    name: str
    value: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": list(self.value)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlagSpec:
        return cls(name=data.get("name", ""), value=list(data.get("value") or []))


@dataclass
class ExperimentSpec:
    """One experiment: scope, target, action and its matchers."""

    scope: str
    target: str
    action: str
    desc: str = ""
    matchers: list[FlagSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "scope": self.scope,
            "target": self.target,
            "action": self.action,
        }
        if self.desc:
            result["desc"] = self.desc
        if self.matchers:
            result["matchers"] = [matcher.to_dict() for matcher in self.matchers]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentSpec:
        return cls(
            scope=data.get("scope", ""),
            target=data.get("target", ""),
            action=data.get("action", ""),
            desc=data.get("desc", ""),
            matchers=[FlagSpec.from_dict(item) for item in data.get("matchers") or []],
        )


@dataclass
class ChaosBladeSpec:
    """Desired state: the list of experiments."""

    experiments: list[ExperimentSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"experiments": [exp.to_dict() for exp in self.experiments]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeSpec:
        return cls(
            experiments=[ExperimentSpec.from_dict(item) for item in data.get("experiments") or []]
        )


@dataclass
class ResourceStatus:
    """Result of an experiment on one resource."""

    kind: str = ""
    identifier: str = ""
    id: str = ""
    state: str = ""
    error: str = ""
    success: bool = False

    def create_fail(self, error: str) -> ResourceStatus:
        """Mark this status failed with the given error and return a copy."""
        self.state = ERROR_STATE
        self.error = error
        self.success = False
        return replace(self)

    def create_success(self) -> ResourceStatus:
        """Mark this status successful and return a copy."""
        self.state = SUCCESS_STATE
        self.success = True
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.id:
            result["id"] = self.id
        result["state"] = self.state
        if self.error:
            result["error"] = self.error
        result["success"] = self.success
        result["kind"] = self.kind
        if self.identifier:
            result["identifier"] = self.identifier
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceStatus:
        return cls(
            kind=data.get("kind", ""),
            identifier=data.get("identifier", ""),
            id=data.get("id", ""),
            state=data.get("state", ""),
            error=data.get("error", ""),
            success=bool(data.get("success", False)),
        )


@dataclass
class ExperimentStatus:
    """Result of one experiment across its resources."""

    scope: str = ""
    target: str = ""
    action: str = ""
    success: bool = False
    state: str = ""
    error: str = ""
    res_statuses: list[ResourceStatus] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "scope": self.scope,
            "target": self.target,
            "action": self.action,
            "success": self.success,
            "state": self.state,
        }
        if self.error:
            result["error"] = self.error
        if self.res_statuses:
            result["resStatuses"] = [status.to_dict() for status in self.res_statuses]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentStatus:
        raw = data.get("resStatuses")
        return cls(
            scope=data.get("scope", ""),
            target=data.get("target", ""),
            action=data.get("action", ""),
            success=bool(data.get("success", False)),
            state=data.get("state", ""),
            error=data.get("error", ""),
            res_statuses=None if raw is None else [ResourceStatus.from_dict(item) for item in raw],
        )


def create_fail_experiment_status(
    error: str, res_statuses: list[ResourceStatus] | None = None
) -> ExperimentStatus:
    """Build a failed experiment status."""
    return ExperimentStatus(
        success=False, state=ERROR_STATE, error=error, res_statuses=res_statuses
    )


def create_success_experiment_status(
    res_statuses: list[ResourceStatus] | None = None,
) -> ExperimentStatus:
    """Build a successful experiment status."""
    return ExperimentStatus(success=True, state=SUCCESS_STATE, res_statuses=res_statuses)


def create_destroyed_experiment_status(
    res_statuses: list[ResourceStatus] | None = None,
) -> ExperimentStatus:
    """Build a destroyed experiment status."""
    return ExperimentStatus(success=True, state=DESTROYED_STATE, res_statuses=res_statuses)


@dataclass
class ChaosBladeStatus:
    """Observed state: the phase and per-experiment statuses."""

    phase: ClusterPhase = ClusterPhase.INITIAL
    exp_statuses: list[ExperimentStatus] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.phase.value:
            result["phase"] = self.phase.value
        result["expStatuses"] = (
            None if self.exp_statuses is None else [s.to_dict() for s in self.exp_statuses]
        )
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeStatus:
        raw = data.get("expStatuses")
        return cls(
            phase=ClusterPhase(data.get("phase", "") or ""),
            exp_statuses=None if raw is None else [ExperimentStatus.from_dict(i) for i in raw],
        )


@dataclass
class ChaosBlade:
    """A ChaosBlade custom resource."""

    name: str = ""
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: datetime | None = None
    spec: ChaosBladeSpec = field(default_factory=ChaosBladeSpec)
    status: ChaosBladeStatus = field(default_factory=ChaosBladeStatus)

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if self.name:
            metadata["name"] = self.name
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.deletion_timestamp is not None:
            metadata["deletionTimestamp"] = _format_time(self.deletion_timestamp)
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.finalizers:
            metadata["finalizers"] = list(self.finalizers)
        return {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "metadata": metadata,
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBlade:
        metadata = data.get("metadata") or {}
        stamp = metadata.get("deletionTimestamp")
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            annotations=dict(metadata.get("annotations") or {}),
            finalizers=list(metadata.get("finalizers") or []),
            deletion_timestamp=_parse_time(stamp) if stamp else None,
            spec=ChaosBladeSpec.from_dict(data.get("spec") or {}),
            status=ChaosBladeStatus.from_dict(data.get("status") or {}),
        )


@dataclass
class ChaosBladeList:
    """A list of ChaosBlade resources."""

    items: list[ChaosBlade] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeList:
        return cls(items=[ChaosBlade.from_dict(item) for item in data.get("items") or []])