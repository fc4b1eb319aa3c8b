"""The GCE deployer: builds, tears down and collects logs from a kube-up cluster."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from gcedeploy.env import EnvSettings, pseudo_unique_substring
from gcedeploy.options import BuildOptions, RunOptions

NAME = "gce"
GIT_TAG = ""

DEFAULT_BOSKOS_LOCATION = "http://boskos.test-pods.svc.cluster.local."

_log = logging.getLogger(__name__)

Runner = Callable[..., Any]
ProjectAcquirer = Callable[["Deployer"], str]
ProjectReleaser = Callable[[str], None]


class DeployerError(Exception):
    """Raised when a deployer phase cannot complete."""


def _default_artifacts_dir() -> str:
    return os.environ.get("ARTIFACTS") or os.path.join(os.getcwd(), "_artifacts")


def _env_to_mapping(entries: Sequence[str]) -> dict[str, str]:
    mapping = {}
    for entry in entries:
        key, _, value = entry.partition("=")
        mapping[key] = value
    return mapping


@dataclass
class Deployer:
    """Deploys Kubernetes clusters on GCE through the cluster/ scripts."""

    run_options: RunOptions
    build_options: BuildOptions = field(default_factory=BuildOptions)
    env: list[str] = field(default_factory=list)
    boskos_acquire_timeout_seconds: int = 5 * 60
    boskos_heartbeat_interval_seconds: int = 5 * 60
    repo_root: str = ""
    gcp_project: str = ""
    gcp_zone: str = ""
    enable_compute_api: bool = False
    overwrite_logs_dir: bool = False
    boskos_location: str = DEFAULT_BOSKOS_LOCATION
    legacy_mode: bool = False
    num_nodes: int = 3
    enable_cache_mutation_detector: bool = False
    runtime_config: str = ""
    enable_pod_security_policy: bool = False
    create_custom_network: bool = False
    node_scopes: str = ""
    node_service_account: str = ""
    cloud_provider: str = ""
    feature_gates: str = ""
    master_size: str = ""
    node_size: str = ""
    ingress_gce_image: str = ""
    artifacts_dir: str = ""
    project_acquirer: Optional[ProjectAcquirer] = field(default=None, repr=False)
    project_releaser: Optional[ProjectReleaser] = field(default=None, repr=False)
    runner: Runner = field(default=subprocess.run, repr=False)

    kubeconfig_path: str = field(init=False)
    kubectl_path: str = field(init=False, default="")
    logs_dir: str = field(init=False)
    instance_prefix: str = field(init=False)
    network: str = field(init=False)
    _project_acquired: bool = field(init=False, default=False, repr=False)
    _initialized: bool = field(init=False, default=False, repr=False)

    def __post_init__(self) -> None:
        if not self.artifacts_dir:
            self.artifacts_dir = _default_artifacts_dir()
        self.kubeconfig_path = os.path.join(self.run_options.run_dir, "kubetest2-kubeconfig")
        self.logs_dir = os.path.join(self.artifacts_dir, "cluster-logs")
        # resource names must start with a letter
        prefix = "kt2-" + pseudo_unique_substring(self.run_options.run_id)
        self.instance_prefix = prefix
        self.network = prefix

    def provider(self) -> str:
        """Name of this deployer."""
        return NAME

    def version(self) -> str:
        """Version tag recorded at build time."""
        return GIT_TAG

    def kubeconfig(self) -> str:
        """Return the path of the kubeconfig written for this run."""
        try:
            os.stat(self.kubeconfig_path)
        except FileNotFoundError:
            raise DeployerError(f"kubeconfig does not exist at: {self.kubeconfig_path}") from None
        except OSError as err:
            raise DeployerError(
                f"unknown error when checking for kubeconfig at {self.kubeconfig_path}: {err}"
            ) from err
        return self.kubeconfig_path

    # -- initialisation -------------------------------------------------

    def _init(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._initialize()

    def _initialize(self) -> None:
        if self.run_options.build:
            try:
                self._verify_build_flags()
            except (DeployerError, ValueError, OSError) as err:
                raise DeployerError(f"init failed to check build flags: {err}") from err

        if self.run_options.up and not self.gcp_project:
            _log.info("No GCP project provided, acquiring one")
            if self.project_acquirer is None:
                raise DeployerError(
                    "init failed to get project: no GCP project provided and no project acquirer configured"
                )
            try:
                project = self.project_acquirer(self)
            except Exception as err:
                raise DeployerError(f"init failed to get project from boskos: {err}") from err
            self.gcp_project = project
            self._project_acquired = True
            _log.info("Got project %s from boskos", project)

        if self.run_options.down:
            try:
                self._verify_down_flags()
            except (DeployerError, OSError) as err:
                raise DeployerError(f"init failed to verify flags for down: {err}") from err

    def set_repo_path_if_not_set(self) -> None:
        """Default the repo root to the current working directory."""
        if self.repo_root:
            return
        try:
            cwd = os.getcwd()
        except OSError as err:
            raise DeployerError(
                "failed to get current working directory for setting Kubernetes root path: "
                f"{err}"
            ) from err
        _log.info("defaulting repo root to the current directory: %s", cwd)
        self.repo_root = cwd

    def _verify_build_flags(self) -> None:
        self.set_repo_path_if_not_set()
        self.build_options.repo_root = self.repo_root
        self.build_options.validate()

    def _verify_down_flags(self) -> None:
        self.set_repo_path_if_not_set()
        if not self.gcp_project:
            raise DeployerError("gcp project must be set")

    # -- environment ----------------------------------------------------

    def build_env(self) -> list[str]:
        """Return the KEY=VALUE environment for the cluster scripts."""
        settings = EnvSettings(
            project=self.gcp_project,
            zone=self.gcp_zone,
            kubeconfig_path=self.kubeconfig_path,
            instance_prefix=self.instance_prefix,
            network=self.network,
            num_nodes=self.num_nodes,
            kubectl_path=self.kubectl_path,
            enable_cache_mutation_detector=self.enable_cache_mutation_detector,
            runtime_config=self.runtime_config,
            enable_pod_security_policy=self.enable_pod_security_policy,
            create_custom_network=self.create_custom_network,
            master_size=self.master_size,
            node_size=self.node_size,
            node_scopes=self.node_scopes,
            node_service_account=self.node_service_account,
            ingress_gce_image=self.ingress_gce_image,
            cloud_provider=self.cloud_provider,
            feature_gates=self.feature_gates,
            target_build_arch=self.build_options.target_build_arch,
            extra_env=list(self.env),
        )
        return settings.to_env()

    def verify_kubectl(self) -> str:
        """Return the kubectl to use: the one in the run dir, else the one on PATH."""
        local = os.path.join(self.run_options.run_dir, "kubectl")
        if os.path.exists(local):
            return local
        found = shutil.which("kubectl")
        if found is None:
            raise DeployerError(
                "could not find kubectl in $PATH, please ensure your environment has the kubectl binary"
            )
        return found

    def _run(self, args: Sequence[str], **kwargs: Any) -> None:
        self.runner(list(args), check=True, **kwargs)

    # -- build ----------------------------------------------------------

    def build(self) -> None:
        """Build Kubernetes, the legacy way or with the repo's release tooling."""
        _log.info("GCE deployer starting Build()")
        try:
            self._init()
        except DeployerError as err:
            raise DeployerError(f"build failed to init: {err}") from err

        if self.legacy_mode:
            version = self.build_options.build()
            # avoid a double '+' so the version stays a valid docker tag
            separator = "-" if "+" in version else "+"
            version += separator + self.run_options.run_id
            if self.build_options.stage_location:
                try:
                    self.build_options.stage(version)
                except Exception as err:
                    raise DeployerError(f"error staging build: {err}") from err
            return

        if os.path.exists(os.path.join(self.repo_root, "Makefile")):
            args = ["make", "release-tars"]
        elif os.path.exists(os.path.join(self.repo_root, "BUILD")):
            args = ["bazel", "build", "//release:release-tars"]
        else:
            raise DeployerError("cannot determine build system")

        try:
            self._run(args, cwd=self.repo_root)
        except (OSError, subprocess.CalledProcessError) as err:
            raise DeployerError(f"error during make step of build: {err}") from err

    # -- down -----------------------------------------------------------

    def down(self) -> None:
        """Tear the cluster down and release any acquired project."""
        _log.info("GCE deployer starting Down()")
        try:
            self._init()
        except DeployerError as err:
            raise DeployerError(f"down failed to init: {err}") from err

        self.kubectl_path = self.verify_kubectl()
        env = _env_to_mapping(self.build_env())
        script = os.path.join(self.repo_root, "cluster", "kube-down.sh")
        _log.info("About to run script at: %s", script)
        try:
            self._run([script], env=env)
        except (OSError, subprocess.CalledProcessError) as err:
            raise DeployerError(f"error encountered during {script}: {err}") from err

        # best effort: kube-down should already have removed these
        self.delete_firewall_rule_node_port()

        if self._project_acquired and self.project_releaser is not None:
            try:
                self.project_releaser(self.gcp_project)
            except Exception as err:
                raise DeployerError(f"down failed to release boskos project: {err}") from err

    # -- firewall -------------------------------------------------------

    def node_tag(self) -> str:
        """The node tag kube-up.sh derives from the instance prefix."""
        return f"{self.instance_prefix}-minion"

    def node_port_rule_name(self) -> str:
        """Name of the firewall rule opening the NodePort range."""
        return f"{self.node_tag()}-nodeports"

    def create_firewall_rule_node_port(self) -> None:
        """Create the firewall rule that opens NodePorts on the nodes."""
        args = [
            "gcloud", "compute", "firewall-rules", "create",
            "--project", self.gcp_project,
            "--target-tags", self.node_tag(),
            "--allow", "tcp:30000-32767,udp:30000-32767",
            "--network", self.network,
            self.node_port_rule_name(),
        ]
        try:
            self._run(args)
        except (OSError, subprocess.CalledProcessError) as err:
            raise DeployerError(f"failed to create nodeports firewall rule: {err}") from err

    def delete_firewall_rule_node_port(self) -> None:
        """Delete the NodePort firewall rule, warning instead of failing."""
        args = [
            "gcloud", "compute", "firewall-rules", "delete",
            "--project", self.gcp_project,
            self.node_port_rule_name(),
        ]
        try:
            self._run(args)
        except (OSError, subprocess.CalledProcessError):
            _log.warning("failed to delete nodeports firewall rules: might be deleted already?")

    # -- logs -----------------------------------------------------------

    def dump_cluster_logs(self) -> None:
        """Collect node logs and a kubectl cluster-info dump into the logs dir."""
        _log.info("GCE deployer starting DumpClusterLogs()")
        try:
            self._init()
        except DeployerError as err:
            raise DeployerError(f"dump cluster logs failed to init: {err}") from err

        try:
            self.make_logs_dir()
        except DeployerError as err:
            raise DeployerError(f"couldn't make logs dir: {err}") from err

        # ssh first: kubectl fails when the control plane never came up
        try:
            self._ssh_dump()
        except DeployerError as err:
            raise DeployerError(f"failed to dump logs from instance log files: {err}") from err

        try:
            self._kubectl_dump()
        except DeployerError as err:
            raise DeployerError(f"failed to dump cluster info with kubectl: {err}") from err

    def make_logs_dir(self) -> None:
        """Create the logs dir, replacing an existing one only if allowed."""
        if not os.path.exists(self.logs_dir):
            try:
                os.mkdir(self.logs_dir)
            except OSError as err:
                raise DeployerError(f"failed to create {self.logs_dir}: {err}") from err
            return

        if not self.overwrite_logs_dir:
            raise DeployerError(
                f"cluster logs directory {self.logs_dir} already exists, please clean up "
                "manually or use the overwrite flag before continuing"
            )

        _log.info("logs directory %s already exists, removing and recreating", self.logs_dir)
        try:
            shutil.rmtree(self.logs_dir)
        except OSError as err:
            raise DeployerError(f"failed to delete existing logs directory: {err}") from err
        try:
            os.mkdir(self.logs_dir)
        except OSError as err:
            raise DeployerError(f"failed to create {self.logs_dir}: {err}") from err

    def _ssh_dump(self) -> None:
        env = _env_to_mapping(self.build_env())
        args = [os.path.join(self.repo_root, "cluster", "log-dump", "log-dump.sh"), self.logs_dir]
        _log.info("About to run: %s", args)
        try:
            self._run(args, env=env)
        except (OSError, subprocess.CalledProcessError) as err:
            raise DeployerError(f"failed to use log-dump.sh for cluster logs: {err}") from err

    def _kubectl_dump(self) -> None:
        env = _env_to_mapping(self.build_env())
        outpath = os.path.join(self.logs_dir, "cluster-info.log")
        try:
            outfile = open(outpath, "w", encoding="utf-8")
        except OSError as err:
            raise DeployerError(f"failed to create cluster-info log file: {err}") from err
        args = [self.kubectl_path, "cluster-info", "dump"]
        _log.info("About to run: %s", args)
        with outfile:
            try:
                self._run(args, env=env, stdout=outfile)
            except (OSError, subprocess.CalledProcessError) as err:
                raise DeployerError(f"couldn't use kubectl to dump cluster info: {err}") from err