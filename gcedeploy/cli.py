"""Command line entry point for the GCE deployer."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import uuid
from typing import Optional, Sequence

from gcedeploy.deployer import DEFAULT_BOSKOS_LOCATION, NAME, Deployer, DeployerError
from gcedeploy.options import BuildOptions, RunOptions


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f"kubetest2-{NAME}", description="GCE cluster deployer")
    parser.add_argument("--version", action="store_true", help="print the version and exit")
    parser.add_argument("--build", action="store_true", help="build kubernetes")
    parser.add_argument("--down", action="store_true", help="tear the cluster down")
    parser.add_argument("--dump-cluster-logs", action="store_true", help="collect cluster logs")
    parser.add_argument("--run-id", default="", help="identifier of this run")
    parser.add_argument("--run-dir", default="", help="directory holding files of this run")
    parser.add_argument("--artifacts", default="", help="directory for artifacts")
    parser.add_argument("--env", action="append", default=[], help="KEY=VALUE for the scripts")
    parser.add_argument("--boskos-acquire-timeout-seconds", type=int, default=300)
    parser.add_argument("--boskos-heartbeat-interval-seconds", type=int, default=300)
    parser.add_argument("--boskos-location", default=DEFAULT_BOSKOS_LOCATION)
    parser.add_argument("--repo-root", default="")
    parser.add_argument("--gcp-project", default="")
    parser.add_argument("--gcp-zone", default="")
    parser.add_argument("--enable-compute-api", action="store_true")
    parser.add_argument("--overwrite-logs-dir", action="store_true")
    parser.add_argument("--legacy-mode", action="store_true")
    parser.add_argument("--num-nodes", type=int, default=3)
    parser.add_argument("--enable-cache-mutation-detector", action="store_true")
    parser.add_argument("--runtime-config", default="")
    parser.add_argument("--enable-pod-security-policy", action="store_true")
    parser.add_argument("--create-custom-network", action="store_true")
    parser.add_argument("--node-scopes", default="")
    parser.add_argument("--node-service-account", default="")
    parser.add_argument("--cloud-provider", default="")
    parser.add_argument("--feature-gates", default="")
    parser.add_argument("--master-size", default="")
    parser.add_argument("--node-size", default="")
    parser.add_argument("--ingress-gce-image", default="")
    parser.add_argument("--stage-location", default="")
    parser.add_argument("--target-build-arch", default="linux/amd64")
    parser.add_argument("--strategy", default="make")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def _make_deployer(args: argparse.Namespace) -> Deployer:
    run_id = args.run_id or str(uuid.uuid4())
    run_dir = args.run_dir or os.path.join(os.getcwd(), "_rundir", run_id)
    run_options = RunOptions(
        run_id=run_id,
        run_dir=run_dir,
        build=args.build,
        down=args.down,
    )
    build_options = BuildOptions(
        stage_location=args.stage_location,
        strategy=args.strategy,
        target_build_arch=args.target_build_arch,
    )
    return Deployer(
        run_options,
        build_options=build_options,
        env=list(args.env),
        boskos_acquire_timeout_seconds=args.boskos_acquire_timeout_seconds,
        boskos_heartbeat_interval_seconds=args.boskos_heartbeat_interval_seconds,
        repo_root=args.repo_root,
        gcp_project=args.gcp_project,
        gcp_zone=args.gcp_zone,
        enable_compute_api=args.enable_compute_api,
        overwrite_logs_dir=args.overwrite_logs_dir,
        boskos_location=args.boskos_location,
        legacy_mode=args.legacy_mode,
        num_nodes=args.num_nodes,
        enable_cache_mutation_detector=args.enable_cache_mutation_detector,
        runtime_config=args.runtime_config,
        enable_pod_security_policy=args.enable_pod_security_policy,
        create_custom_network=args.create_custom_network,
        node_scopes=args.node_scopes,
        node_service_account=args.node_service_account,
        cloud_provider=args.cloud_provider,
        feature_gates=args.feature_gates,
        master_size=args.master_size,
        node_size=args.node_size,
        ingress_gce_image=args.ingress_gce_image,
        artifacts_dir=args.artifacts,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the requested deployer phases; return the process exit status."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    deployer = _make_deployer(args)
    if args.version:
        print(f"{deployer.provider()} {deployer.version()}".rstrip())
        return 0

    phases = []
    if args.build:
        phases.append(deployer.build)
    if args.dump_cluster_logs:
        phases.append(deployer.dump_cluster_logs)
    if args.down:
        phases.append(deployer.down)

    try:
        for phase in phases:
            phase()
    except DeployerError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())