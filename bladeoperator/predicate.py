"""Event filter deciding which ChaosBlade events trigger reconciliation."""

from __future__ import annotations

import json
import logging
from typing import Any

from .controller import CHAOSBLADE_FINALIZER, PRE_SPEC_ANNOTATION, contains
from .types import ChaosBlade, ClusterPhase

logger = logging.getLogger(__name__)


class SpecUpdatedPredicate:
    """Passes creations, deletions and updates that need the reconciler's attention."""

    def create(self, obj: Any) -> bool:
        """Only freshly created blades in the initial phase pass."""
        if not isinstance(obj, ChaosBlade):
            return False
        logger.info("trigger create event, name: %s", obj.name)
        logger.debug("creating obj: %s", obj)
        if obj.deletion_timestamp is not None:
            logger.info(
                "unexpected phase for cb creating, name: %s, phase: %s",
                obj.name,
                obj.status.phase.value,
            )
            return False
        if obj.status.phase == ClusterPhase.INITIAL:
            return True
        logger.info(
            "unexpected phase for cb creating, name: %s, phase: %s",
            obj.name,
            obj.status.phase.value,
        )
        return False

    def delete(self, obj: Any) -> bool:
        """Deletions pass while the blade still carries the operator finalizer."""
        if not isinstance(obj, ChaosBlade):
            return False
        logger.info("trigger delete event, name: %s", obj.name)
        logger.debug("deleting obj: %s", obj)
        return contains(obj.finalizers, CHAOSBLADE_FINALIZER)

    def update(self, old: Any, new: Any) -> bool:
        """Decide whether an update passes.

        When the spec changed, the old spec is stored as JSON in the new
        object's "preSpec" annotation, replacing its other annotations.
        """
        if not isinstance(old, ChaosBlade):
            return False
        logger.info("trigger update event, name: %s", old.name)
        if not isinstance(new, ChaosBlade):
            return False
        logger.debug("updating oldObj: %s", old)
        logger.debug("updating newObj: %s", new)
        if new.spec != old.spec:
            encoded = json.dumps(old.spec.to_dict(), separators=(",", ":"))
            new.annotations = {PRE_SPEC_ANNOTATION: encoded}
            return True
        if new.status.phase == ClusterPhase.INITIAL:
            return True
        if old.deletion_timestamp is None and new.deletion_timestamp is not None:
            return True
        if new.status.phase in (
            ClusterPhase.RUNNING,
            ClusterPhase.ERROR,
            ClusterPhase.DESTROYING,
        ):
            return False
        if new.status.phase != old.status.phase:
            return True
        if new.status != old.status:
            return True
        if new.deletion_timestamp is not None:
            if contains(new.finalizers, CHAOSBLADE_FINALIZER):
                return True
            logger.info(
                "cannot find the %s finalizer, so skip the update event", CHAOSBLADE_FINALIZER
            )
            return False
        logger.info(
            "spec not changed under %s phase, so skip the update event", new.status.phase.value
        )
        return False

    def generic(self, obj: Any) -> bool:
        """Generic events never pass; they are logged and dropped."""
        name = obj.name if isinstance(obj, ChaosBlade) else type(obj).__name__
        logger.debug("skip generic event, object: %s", name)
        return False