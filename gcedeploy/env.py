"""Environment construction for the cluster scripts run by the GCE deployer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

_MAX_RESOURCE_NAME_PREFIX_LENGTH = 13


def pseudo_unique_substring(uuid: str) -> str:
    """Return the leading, most time-dependent part of a UUID for resource names."""
    return uuid[:_MAX_RESOURCE_NAME_PREFIX_LENGTH]


def get_cluster_ip_range(num_nodes: int) -> str:
    """Return the cluster IP range suited to the given number of nodes."""
    if num_nodes > 4000:
        return "10.64.0.0/11"
    if num_nodes > 2000:
        return "10.64.0.0/12"
    if num_nodes > 1000:
        return "10.64.0.0/13"
    return "10.64.0.0/14"


def parse_extra_env(entries: Optional[Iterable[str]]) -> list[tuple[str, str]]:
    """Parse KEY=VALUE entries, dropping any that do not hold exactly one '='."""
    pairs = []
    for entry in entries or ():
        parts = entry.split("=")
        if len(parts) == 2:
            pairs.append((parts[0], parts[1]))
    return pairs


@dataclass
class EnvSettings:
    """Everything that goes into the environment of the kube-* scripts."""

    project: str = ""
    zone: str = ""
    kubeconfig_path: str = ""
    instance_prefix: str = ""
    network: str = ""
    num_nodes: int = 3
    kubectl_path: str = ""
    enable_cache_mutation_detector: bool = False
    runtime_config: str = ""
    enable_pod_security_policy: bool = False
    create_custom_network: bool = False
    master_size: str = ""
    node_size: str = ""
    node_scopes: str = ""
    node_service_account: str = ""
    ingress_gce_image: str = ""
    cloud_provider: str = ""
    feature_gates: str = ""
    target_build_arch: str = ""
    extra_env: list[str] = field(default_factory=list)

    def to_env(self, environ: Optional[Mapping[str, str]] = None) -> list[str]:
        """Build the KEY=VALUE list; only PATH and USER come from `environ`."""
        if environ is None:
            environ = os.environ

        env = [f"PATH={environ.get('PATH', '')}"]

        user = environ.get("USER")
        if user is not None and user != "root":
            env.append(f"USER={user}")
        else:
            env.append("USER=kubetest2")

        env.extend(
            [
                f"PROJECT={self.project}",
                f"KUBE_GCE_ZONE={self.zone}",
                f"KUBECONFIG={self.kubeconfig_path}",
                f"KUBE_GCE_INSTANCE_PREFIX={self.instance_prefix}",
                f"KUBE_GCE_NETWORK={self.network}",
                f"NUM_NODES={self.num_nodes}",
                f"CLUSTER_IP_RANGE={get_cluster_ip_range(self.num_nodes)}",
                f"NETWORK={self.network}",
            ]
        )

        if self.enable_cache_mutation_detector:
            env.append("ENABLE_CACHE_MUTATION_DETECTOR=true")
        if self.runtime_config:
            env.append(f"KUBE_RUNTIME_CONFIG={self.runtime_config}")
        if self.enable_pod_security_policy:
            env.append("ENABLE_POD_SECURITY_POLICY=true")
        if self.create_custom_network:
            env.append("CREATE_CUSTOM_NETWORK=true")
        if self.master_size:
            env.append(f"MASTER_SIZE={self.master_size}")
        if self.node_size:
            env.append(f"NODE_SIZE={self.node_size}")

        env.append(f"KUBECTL_PATH={self.kubectl_path}")
        env.append("KUBE_CONFIG_FILE=config-test.sh")

        optional = [
            ("NODE_SCOPES", self.node_scopes),
            ("KUBE_GCE_NODE_SERVICE_ACCOUNT", self.node_service_account),
            ("GCE_GLBC_IMAGE", self.ingress_gce_image),
            ("CLOUD_PROVIDER_FLAG", self.cloud_provider),
            ("KUBE_FEATURE_GATES", self.feature_gates),
            ("KUBE_BUILD_PLATFORMS", self.target_build_arch),
        ]
        env.extend(f"{key}={value}" for key, value in optional if value)

        env.extend(f"{key}={value}" for key, value in parse_extra_env(self.extra_env))
        return env