from datetime import datetime, timezone

import pytest

from bladeoperator.types import (
    API_VERSION,
    ChaosBlade,
    ChaosBladeList,
    ChaosBladeSpec,
    ChaosBladeStatus,
    ClusterPhase,
    ExperimentSpec,
    ExperimentStatus,
    FlagSpec,
    ResourceStatus,
    create_destroyed_experiment_status,
    create_fail_experiment_status,
    create_success_experiment_status,
)


def _sample_blade():
    spec = ChaosBladeSpec(
        experiments=[
            ExperimentSpec(
                scope="pod",
                target="pod",
                action="delete",
                desc="remove pods",
                matchers=[FlagSpec("names", ["nginx-app"]), FlagSpec("namespace", ["default"])],
            )
        ]
    )
    status = ChaosBladeStatus(
        phase=ClusterPhase.RUNNING,
        exp_statuses=[
            create_success_experiment_status(
                [ResourceStatus(kind="pod", identifier="default/node1/nginx-app").create_success()]
            )
        ],
    )
    return ChaosBlade(
        name="delete-pod",
        annotations={"preSpec": "{}"},
        finalizers=["finalizer.chaosblade.io"],
        deletion_timestamp=datetime(2021, 3, 1, 12, 0, 0, tzinfo=timezone.utc),
        spec=spec,
        status=status,
    )


def test_phase_values():
    assert ClusterPhase.INITIAL.value == ""
    assert ClusterPhase("Destroying") is ClusterPhase.DESTROYING


def test_create_fail_mutates_and_returns_copy():
    status = ResourceStatus(kind="pod", identifier="ns/node/pod")
    result = status.create_fail("boom")
    assert (result.state, result.error, result.success) == ("Error", "boom", False)
    assert status.state == "Error"
    assert result is not status
    assert result == status


def test_create_success():
    status = ResourceStatus(kind="pod")
    result = status.create_success()
    assert result.state == "Success"
    assert result.success is True


def test_experiment_status_factories():
    fail = create_fail_experiment_status("bad", None)
    assert (fail.success, fail.state, fail.error, fail.res_statuses) == (False, "Error", "bad", None)
    ok = create_success_experiment_status([])
    assert (ok.success, ok.state) == (True, "Success")
    gone = create_destroyed_experiment_status([])
    assert (gone.success, gone.state) == (True, "Destroyed")


def test_resource_status_omits_empty_fields():
    data = ResourceStatus(kind="pod").to_dict()
    assert "id" not in data and "error" not in data and "identifier" not in data
    assert data["success"] is False


def test_experiment_status_round_trip():
    status = create_fail_experiment_status(
        "see details", [ResourceStatus(kind="pod", identifier="a/b/c").create_fail("x")]
    )
    assert ExperimentStatus.from_dict(status.to_dict()) == status
    assert "resStatuses" in status.to_dict()


def test_experiment_spec_omitempty():
    data = ExperimentSpec(scope="node", target="cpu", action="load").to_dict()
    assert set(data) == {"scope", "target", "action"}
    assert ExperimentSpec.from_dict(data) == ExperimentSpec("node", "cpu", "load")


def test_flag_spec_round_trip():
    flag = FlagSpec("labels", ["app=test"])
    assert FlagSpec.from_dict(flag.to_dict()) == flag


def test_status_initial_phase_omitted():
    data = ChaosBladeStatus().to_dict()
    assert "phase" not in data
    assert data["expStatuses"] is None
    assert ChaosBladeStatus.from_dict(data) == ChaosBladeStatus()


def test_blade_round_trip():
    blade = _sample_blade()
    data = blade.to_dict()
    assert data["apiVersion"] == API_VERSION
    assert data["kind"] == "ChaosBlade"
    assert ChaosBlade.from_dict(data) == blade


def test_blade_from_minimal_dict():
    blade = ChaosBlade.from_dict({"metadata": {"name": "b"}})
    assert blade.name == "b"
    assert blade.status.phase is ClusterPhase.INITIAL
    assert blade.spec.experiments == []
    assert blade.deletion_timestamp is None


def test_unknown_phase_rejected():
    with pytest.raises(ValueError):
        ChaosBladeStatus.from_dict({"phase": "Bogus"})


def test_list_from_dict():
    blade = _sample_blade()
    result = ChaosBladeList.from_dict({"items": [blade.to_dict(), blade.to_dict()]})
    assert result.items == [blade, blade]