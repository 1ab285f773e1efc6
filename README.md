# bladeoperator

`bladeoperator` holds the core logic of an operator that runs chaos experiments
against a cluster. It describes experiments as `ChaosBlade` resources, moves
them through their lifecycle phases, builds the pod patch that adds a
fault-injection sidecar, and decides which file-system calls inside that
sidecar fail or are delayed.

The package uses only the standard library.

## What is inside

| Module | Purpose |
| --- | --- |
| `bladeoperator.version` | Splits a combined `version,product` string (`parse_combined_version`); exposes `VERSION` and `PRODUCT`. |
| `bladeoperator.types` | The `ChaosBlade` resource model: `ClusterPhase`, `FlagSpec`, `ExperimentSpec`, `ChaosBladeSpec`, `ResourceStatus`, `ExperimentStatus`, `ChaosBladeStatus`, `ChaosBlade`, `ChaosBladeList`, with `to_dict` / `from_dict` for their JSON form, and the `create_*_experiment_status` helpers. |
| `bladeoperator.runtime` | Operator settings (`RuntimeConfig`) read from command-line style flags with `build_parser` and `parse_config`, and the image repository chosen per product (`image_repo_for_aliyun`, `image_repo_for_community`). |
| `bladeoperator.faults` | `InjectMessage` and the thread-safe `FaultRegistry` that keeps the active fault for each file-system method. |
| `bladeoperator.hookserver` | `HookServer`, a small HTTP service with `/inject` and `/recover` endpoints over a `FaultRegistry`. |
| `bladeoperator.hook` | `ChaosbladeHook`, whose `pre_*` callbacks raise `OSError`, sleep, or let a file-system call pass. |
| `bladeoperator.hookclient` | `ChaosbladeHookClient`, which calls a hook server to inject or revoke faults, raising `HookClientError` on failure. |
| `bladeoperator.mutator` | The admission `Mutator`, which adds the fuse sidecar to annotated pods and answers with an `AdmissionResponse` holding JSON patch operations. |
| `bladeoperator.daemonset` | Builds the manifest of the daemonset that deploys the chaos tool to every node, and creates it through a client you pass in. |
| `bladeoperator.controller` | `ReconcileChaosBlade`, the phase machine for `ChaosBlade` resources, `parse_duration`, and `clean_up_blades`, which clears finalizers of blades stuck while destroying. |
| `bladeoperator.predicate` | `SpecUpdatedPredicate`, which filters create, update, delete and generic events. |

## Experiment lifecycle

`ReconcileChaosBlade.reconcile(name)` moves a `ChaosBlade` one step at a time:

```
Initial -> Initialized -> Running | Error -> Updating | Destroying -> ... -> Destroyed
```

* **Initial**: the finalizer `finalizer.chaosblade.io` is added; on the next
  pass the blade is marked `Initialized`.
* **Initialized / Updating**: every experiment is created through the
  executor; the blade is `Running` if at least one succeeded, otherwise `Error`.
* **Running / Error**: when the `preSpec` annotation holds a previous spec, its
  experiments are destroyed and the blade becomes `Updating` (or `Destroying`
  if a destroy failed).
* **Destroying, or deleted**: `finalize` destroys the experiments; on success
  the blade becomes `Destroyed`, otherwise `FinalizeError` is raised.
* **Destroyed**: the finalizer is removed.

The reconciler works against two objects you supply: a client with `get`,
`update`, `update_status`, `list` and `patch`, and an executor with `create`
and `destroy` that return `ExperimentStatus` values.

## Building statuses

```python
from bladeoperator.types import (
    ResourceStatus,
    create_fail_experiment_status,
    create_success_experiment_status,
)

ok = ResourceStatus(kind="pod", identifier="default/node-1/nginx").create_success()
failed = ResourceStatus(kind="pod", identifier="default/node-1/redis").create_fail("pod is not ready")

status = create_success_experiment_status([ok, failed])
print(status.to_dict())

error = create_fail_experiment_status("cannot find the pod resources", None)
```

## Operator settings

```python
from bladeoperator.runtime import parse_config

config = parse_config([
    "--log-level", "debug",
    "--reconcile-count", "10",
    "--chaosblade-image-repository", "registry.example.com/chaosblade-tool",
])
print(config.image_repo())
```

The flags are `--log-level`, `--reconcile-count`, `--qps`,
`--chaosblade-version`, `--chaosblade-image-repository`,
`--chaosblade-image-pull-policy`, `--daemonset-enable`,
`--remove-blade-interval`, `--aliyun-region-id`, `--aliyun-environment`,
`--fuse-sidecar-image`, `--fuse-server-port`, `--webhook-port` and
`--webhook-enable`.

## File-system faults

A fault is described by an `InjectMessage`: the methods it applies to
(`read`, `write`, `open`, `mkdir`, ...), an optional path prefix, a delay in
milliseconds, a percentage of calls to affect, and either a fixed errno or a
random one. Posting it as JSON to a `HookServer` at `/inject` stores it in a
`FaultRegistry`; `ChaosbladeHook` consults that registry on each call. A
request to `/recover` clears the faults of the default hook points
(`DEFAULT_HOOK_POINTS`); `open` and `chmod` are not among them.

```python
from bladeoperator.faults import FaultRegistry, InjectMessage
from bladeoperator.hook import ChaosbladeHook

registry = FaultRegistry()
registry.inject(InjectMessage(methods=["read"], path="/data", errno=5))
hook = ChaosbladeHook("/data", registry)
hook.pre_read("file.txt", 4096, 0)  # raises OSError(5, ...)
```

## What the package does not do

* It has no cluster API client, watch loop or manager: the reconciler,
  predicate, daemonset deployment and clean-up all take client objects you
  provide.
* It does not carry out experiments on pods or nodes; the reconciler hands
  each experiment to the executor you provide.
* It does not mount a FUSE file system; `ChaosbladeHook` only supplies the
  decisions a file-system layer would call.
* It does not serve the admission webhook over HTTPS; `Mutator.handle` takes a
  request mapping and returns the response.
* It installs no command.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.