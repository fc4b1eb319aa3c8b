# gcedeploy

A deployer for Kubernetes end-to-end test clusters on Google Compute Engine.
It drives the cluster scripts of a local Kubernetes checkout (either
`kubernetes/cloud-provider-gcp` or, in legacy mode, `kubernetes/kubernetes`).

## Phases

- **build** (`Deployer.build`): runs `make release-tars` in the repo root if it
  holds a `Makefile`, otherwise `bazel build //release:release-tars` if it holds
  a `BUILD` file, and fails if it holds neither. In legacy mode it instead calls
  the `builder` callable of `BuildOptions`, appends the run id to the returned
  version (with `-` if the version already contains `+`, otherwise `+`) and, if
  a stage location is set, passes that version to the `stager` callable.
- **down** (`Deployer.down`): finds `kubectl` (first `kubectl` in the run
  directory, then on `PATH`), runs `cluster/kube-down.sh`, then deletes the
  node-port firewall rule with `gcloud` on a best-effort basis (a failure is
  only logged). A GCP project must be set for this phase.
- **dump logs** (`Deployer.dump_cluster_logs`): creates `cluster-logs` inside
  the artifacts directory (`$ARTIFACTS`, or `./_artifacts` when unset), runs
  `cluster/log-dump/log-dump.sh` into it and writes the output of
  `kubectl cluster-info dump` to `cluster-info.log`. An existing logs directory
  is an error unless `overwrite_logs_dir` is set, in which case it is replaced.

The repository root defaults to the current directory. Failures in any phase
raise `gcedeploy.deployer.DeployerError`.

`Deployer.create_firewall_rule_node_port` creates the matching firewall rule
(`<instance prefix>-minion-nodeports`, TCP and UDP ports 30000-32767) but no
phase calls it.

## Script environment

Every script receives an environment built from the deployer settings, not the
calling environment: `PATH`, `USER`, `PROJECT`, `KUBE_GCE_ZONE`, `KUBECONFIG`,
`KUBE_GCE_INSTANCE_PREFIX`, `KUBE_GCE_NETWORK`, `NUM_NODES`,
`CLUSTER_IP_RANGE`, `NETWORK`, `KUBECTL_PATH`, `KUBE_CONFIG_FILE=config-test.sh`,
and, when set, `ENABLE_CACHE_MUTATION_DETECTOR`, `KUBE_RUNTIME_CONFIG`,
`ENABLE_POD_SECURITY_POLICY`, `CREATE_CUSTOM_NETWORK`, `MASTER_SIZE`,
`NODE_SIZE`, `NODE_SCOPES`, `KUBE_GCE_NODE_SERVICE_ACCOUNT`, `GCE_GLBC_IMAGE`,
`CLOUD_PROVIDER_FLAG`, `KUBE_FEATURE_GATES` and `KUBE_BUILD_PLATFORMS`.
Only `PATH` and `USER` come from the calling environment; an unset `USER` or a
`USER` of `root` becomes `kubetest2`. Extra `KEY=VALUE` entries are appended;
entries without exactly one `=` are dropped.

The instance prefix and network name are `kt2-` followed by the first 13
characters of the run id. The cluster IP range grows with the node count:
`10.64.0.0/14` up to 1000 nodes, `/13` above 1000, `/12` above 2000 and `/11`
above 4000.

## Installation

```
pip install .
```

`gcloud` must be on `PATH`, and `kubectl` either on `PATH` or in the run
directory.

## Command line

```
gcedeploy --help
```

lists every option. Phases are chosen with `--build`, `--dump-cluster-logs`
and `--down` and run in that order; `--version` prints the deployer name and
version. Other options include `--run-id` (a random UUID by default),
`--run-dir`, `--artifacts`, `--repo-root`, `--gcp-project`, `--gcp-zone`,
`--num-nodes`, `--legacy-mode`, `--overwrite-logs-dir`, repeatable
`--env KEY=VALUE`, and `-v` for informational logging. The command exits with
status 1 and prints the error when a phase fails.

## Library use

```python
from gcedeploy.options import RunOptions
from gcedeploy.deployer import Deployer, DeployerError

deployer = Deployer(
    RunOptions(run_id="09a2565a-7ac6-11eb-a603-2218f636630c", run_dir="/tmp/run", down=True),
    gcp_project="my-test-project",
)
try:
    deployer.dump_cluster_logs()
    deployer.down()
except DeployerError as err:
    print(f"deployment step failed: {err}")
```

`gcedeploy.env` provides `EnvSettings.to_env`, `get_cluster_ip_range`,
`pseudo_unique_substring` and `parse_extra_env` for use on their own.

## What it does not do

- There is no phase that brings a cluster up: `kube-up.sh` is never run and
  the command line has no `--up` option.
- There is no built-in client for a project pool. When the `up` run option is
  set and no project is given, a `project_acquirer` callable must be supplied
  to `Deployer`; a `project_releaser` callable, if given, is called at the end
  of `down` for a project obtained that way.
- No builder or stager is built in for legacy mode. The command line supplies
  none, so a legacy build from the command line produces no version and
  stages nothing; in library use pass them as `BuildOptions(builder=...,
  stager=...)`.
- No tests are run against the cluster.

## Tests

```
pip install .[test]
pytest
```