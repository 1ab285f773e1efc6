"""Reconciler that drives ChaosBlade resources through their lifecycle phases."""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from .runtime import DEFAULT_REMOVE_BLADE_INTERVAL
from .types import (
    ChaosBlade,
    ChaosBladeList,
    ChaosBladeSpec,
    ClusterPhase,
    ExperimentSpec,
    ExperimentStatus,
)

logger = logging.getLogger(__name__)

CHAOSBLADE_FINALIZER = "finalizer.chaosblade.io"
PRE_SPEC_ANNOTATION = "preSpec"
CLEAR_FINALIZERS_PATCH: dict[str, Any] = {"metadata": {"finalizers": []}}

_UNIT_SECONDS = {
    "ns": Decimal("0.000000001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "μs": Decimal("0.000001"),
    "ms": Decimal("0.001"),
    "s": Decimal(1),
    "m": Decimal(60),
    "h": Decimal(3600),
}
_COMPONENT = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)?")


class FinalizeError(Exception):
    """Raised when a ChaosBlade could not be fully finalized."""


class BladeClient(Protocol):
    def get(self, name: str) -> ChaosBlade: ...

    def update(self, blade: ChaosBlade) -> Any: ...

    def update_status(self, blade: ChaosBlade) -> Any: ...

    def list(self) -> ChaosBladeList: ...

    def patch(self, name: str, patch: dict[str, Any]) -> Any: ...


class ExperimentExecutor(Protocol):
    def create(self, name: str, experiment: ExperimentSpec) -> ExperimentStatus: ...

    def destroy(
        self, name: str, experiment: ExperimentSpec, old_status: ExperimentStatus
    ) -> ExperimentStatus: ...


def contains(items: list[str], value: str) -> bool:
    """Whether value is among items."""
    return value in items


def remove(items: list[str], value: str) -> list[str]:
    """A copy of items without value."""
    return [item for item in items if item != value]


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "72h", "1h30m" or "1.5s"; raise ValueError if malformed."""
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total = Decimal(0)
    position = 0
    while position < len(rest):
        match = _COMPONENT.match(rest, position)
        number, unit = match.group(1), match.group(2)
        if not number or number == ".":
            raise ValueError(f"invalid duration {text!r}")
        if unit is None:
            raise ValueError(f"missing unit in duration {text!r}")
        try:
            total += Decimal(number) * _UNIT_SECONDS[unit]
        except InvalidOperation as exc:
            raise ValueError(f"invalid duration {text!r}") from exc
        position = match.end()
    seconds = -total if negative else total
    return timedelta(seconds=float(seconds))


def _resolve_interval(text: str) -> tuple[timedelta, str]:
    try:
        return parse_duration(text), text
    except ValueError as exc:
        logger.error(
            "parse interval error: %s, use default interval: %s",
            exc,
            DEFAULT_REMOVE_BLADE_INTERVAL,
        )
        return parse_duration(DEFAULT_REMOVE_BLADE_INTERVAL), DEFAULT_REMOVE_BLADE_INTERVAL


def clean_up_blades(
    client: BladeClient, interval: timedelta, now: datetime | None = None
) -> list[str]:
    """Clear finalizers of blades stuck destroying for longer than interval.

    Returns the names of the blades that were patched.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    try:
        items = client.list().items
    except Exception as exc:
        logger.error("periodically clean up, list blade error: %s", exc)
        items = []
    logger.info("periodically clean up blade, blade size: %d", len(items))
    cleaned: list[str] = []
    for item in items:
        if item.deletion_timestamp is None:
            continue
        elapsed = now - item.deletion_timestamp
        if (
            item.status.phase == ClusterPhase.DESTROYING
            and elapsed.total_seconds() > interval.total_seconds()
        ):
            logger.info(
                "periodically clean up blade %s, deletion time: %s",
                item.name,
                item.deletion_timestamp,
            )
            try:
                client.patch(item.name, json.loads(json.dumps(CLEAR_FINALIZERS_PATCH)))
            except Exception as exc:
                logger.error("patch blade: %s, error: %s", item.name, exc)
                continue
            cleaned.append(item.name)
    return cleaned


def _run_periodic_clean_up(
    client: BladeClient, interval_text: str, stop: threading.Event
) -> None:
    interval, interval_text = _resolve_interval(interval_text)
    clean_up_blades(client, interval)
    period = int(interval.total_seconds())
    if period <= 0:
        raise ValueError(f"non-positive clean up interval {interval_text!r}")
    logger.info("start periodically clean up blade ticker, interval: %s", interval_text)
    while not stop.wait(period):
        clean_up_blades(client, interval)


def _start_periodic_clean_up(
    client: BladeClient, interval_text: str, stop: threading.Event
) -> threading.Thread:
    thread = threading.Thread(
        target=_run_periodic_clean_up, args=(client, interval_text, stop), daemon=True
    )
    thread.start()
    return thread


class ReconcileChaosBlade:
    """Moves a ChaosBlade from phase to phase, running and destroying its experiments."""

    def __init__(self, client: BladeClient, executor: ExperimentExecutor) -> None:
        self.client = client
        self.executor = executor

    def reconcile(self, name: str) -> ChaosBlade | None:
        """Process the named blade once; return it, or None if it could not be read."""
        try:
            blade = self.client.get(name)
        except Exception:
            return None
        if not blade.spec.experiments:
            return blade
        phase = blade.status.phase

        if phase == ClusterPhase.DESTROYED:
            blade.finalizers = remove(blade.finalizers, CHAOSBLADE_FINALIZER)
            try:
                self.client.update(blade)
            except Exception as exc:
                logger.error(
                    "remove chaosblade finalizer failed at destroyed phase, %s: %s", name, exc
                )
            return blade

        if phase == ClusterPhase.DESTROYING or blade.deletion_timestamp is not None:
            try:
                self.finalize(blade)
            except FinalizeError as exc:
                logger.error("finalize chaosblade failed at destroying phase, %s: %s", name, exc)
            return blade

        if phase == ClusterPhase.INITIAL:
            if contains(blade.finalizers, CHAOSBLADE_FINALIZER):
                blade.status.phase = ClusterPhase.INITIALIZED
                blade.status.exp_statuses = []
                try:
                    self.client.update_status(blade)
                except Exception as exc:
                    logger.error("update chaosblade phase to Initialized failed, %s", exc)
            else:
                blade.finalizers = [*blade.finalizers, CHAOSBLADE_FINALIZER]
                try:
                    self.client.update(blade)
                except Exception as exc:
                    logger.error("add finalizer to chaosblade failed, %s", exc)
            return blade

        if phase in (ClusterPhase.INITIALIZED, ClusterPhase.UPDATING):
            new_phase = ClusterPhase.ERROR
            statuses: list[ExperimentStatus] = []
            for experiment in blade.spec.experiments:
                status = self.executor.create(blade.name, experiment)
                if status.success:
                    new_phase = ClusterPhase.RUNNING
                statuses.append(status)
            blade.status.exp_statuses = statuses
            blade.status.phase = new_phase
            try:
                self.client.update_status(blade)
            except Exception as exc:
                logger.error(
                    "Important!!!!!update phase from %s to %s failed, %s",
                    phase.value,
                    new_phase.value,
                    exc,
                )
            return blade

        if phase in (ClusterPhase.RUNNING, ClusterPhase.ERROR):
            logger.info("update cb: %s", blade)
            pre_spec = blade.annotations.get(PRE_SPEC_ANNOTATION, "")
            if not pre_spec:
                logger.error("can not found matchers in annotations field")
                return blade
            try:
                old_spec = ChaosBladeSpec.from_dict(json.loads(pre_spec))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.error("unmarshal old spec failed, %s: %s", pre_spec, exc)
                return blade
            try:
                self.client.update(blade)
            except Exception as exc:
                logger.error("add annotation to chaosblade failed, %s", exc)
            new_phase = ClusterPhase.UPDATING
            if blade.status.exp_statuses is not None:
                for index, old_status in enumerate(list(blade.status.exp_statuses)):
                    status = self.executor.destroy(
                        blade.name, old_spec.experiments[index], old_status
                    )
                    if not status.success:
                        new_phase = ClusterPhase.DESTROYING
                    blade.status.exp_statuses[index] = status
            blade.status.phase = new_phase
            try:
                self.client.update_status(blade)
            except Exception as exc:
                logger.error(
                    "update phase from %s to %s failed, %s", phase.value, new_phase.value, exc
                )
        return blade

    def finalize(self, blade: ChaosBlade) -> None:
        """Destroy every experiment of blade and record the outcome.

        Raises FinalizeError if the status cannot be saved or an experiment
        could not be destroyed.
        """
        new_phase = ClusterPhase.DESTROYED
        logger.info("Finalize the chaosblade %s", blade.name)
        statuses = blade.status.exp_statuses
        if statuses is not None and len(blade.spec.experiments) == len(statuses):
            for index, experiment in enumerate(blade.spec.experiments):
                status = self.executor.destroy(blade.name, experiment, statuses[index])
                if not status.success:
                    new_phase = ClusterPhase.DESTROYING
                statuses[index] = status
        blade.status.phase = new_phase
        try:
            self.client.update_status(blade)
        except Exception as exc:
            raise FinalizeError(
                f"update chaosblade status failed in finalize phase, {exc}"
            ) from exc
        if blade.status.phase == ClusterPhase.DESTROYING:
            raise FinalizeError("failed to destory, please see the experiment status")
        logger.info("Successfully finalized chaosblade %s", blade.name)