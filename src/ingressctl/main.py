#!/usr/bin/env python3
"""
Management ingress CLI

Inspect, render and remove the management ingress Deployment that the
operator keeps converged.
"""

import argparse
import json
import sys

from kubernetes import client
from kubernetes.config import ConfigException

from ingress_operator import crd
from ingress_operator.errors import WorkloadError
from ingress_operator.k8s import DeploymentStore, load_kube_config
from ingress_operator.readiness import ReadinessState, ReadinessWaiter
from ingress_operator.reconcile import remove_deployment
from ingress_operator.settings import settings
from ingress_operator.templates import WorkloadConfig, build_desired_deployment, workload_labels


def _store(namespace):
    try:
        load_kube_config()
    except ConfigException as e:
        print(f"Error loading Kubernetes config: {e}", file=sys.stderr)
        sys.exit(1)
    return DeploymentStore.from_config(namespace)


def _parse_pairs(pairs):
    result = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        result[key] = value
    return result


def cmd_render(args):
    """Print the desired Deployment without touching the cluster."""
    try:
        node_selector = _parse_pairs(args.node_selector)
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    config = WorkloadConfig(
        image=args.image,
        node_selector=node_selector,
        allowed_host_header=args.allowed_host_header,
        client_id=args.client_id,
        oidc_issuer_url=args.oidc_issuer_url,
        replicas=args.replicas,
    )
    deployment = build_desired_deployment(args.namespace, config)
    print(json.dumps(client.ApiClient().sanitize_for_serialization(deployment), indent=2))


def cmd_status(args):
    """Show the Deployment and its pods."""
    store = _store(args.namespace)
    try:
        deployments = store.list(workload_labels())
        pods = store.list_pods(workload_labels())
    except WorkloadError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not deployments:
        print(f"No {crd.APP_NAME} deployment in namespace {args.namespace}.")
        return

    for deployment in deployments:
        status = deployment.status
        print(f"Deployment: {deployment.metadata.name}")
        print(f"  Ready: {status.ready_replicas or 0}/{status.replicas or 0}")
    print(f"\n{'POD':<50} {'PHASE':<15}")
    print("-" * 65)
    for pod in pods:
        phase = (pod.status.phase if pod.status else None) or "Unknown"
        print(f"{pod.metadata.name:<50} {phase:<15}")


def cmd_wait(args):
    """Wait until the Deployment reports all replicas ready."""
    store = _store(args.namespace)
    try:
        waiter = ReadinessWaiter(store, interval=args.interval, timeout=args.timeout)
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Waiting for deployment '{args.name}' (timeout {args.timeout}s)...")
    try:
        state = waiter.wait(args.name)
    except WorkloadError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        waiter.cancel()
        sys.exit(1)

    if state != ReadinessState.READY:
        print(f"✗ Deployment '{args.name}': {state.value}", file=sys.stderr)
        sys.exit(1)
    print(f"✓ Deployment '{args.name}' is ready")


def cmd_delete(args):
    """Delete the Deployment; deleting a missing one succeeds."""
    store = _store(args.namespace)
    try:
        remove_deployment(store, args.name)
    except WorkloadError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)
    print(f"✓ Deployment '{args.name}' deleted")


def build_parser():
    parser = argparse.ArgumentParser(
        description="Management ingress CLI - inspect and manage the ingress Deployment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Render the Deployment the operator would submit
  %(prog)s render --image repo/img:v1 --allowed-host-header example.com

  # Wait for the rollout to finish
  %(prog)s wait -n ibm-common-services --timeout 600

  # Show deployment and pods
  %(prog)s status -n ibm-common-services

  # Delete the Deployment
  %(prog)s delete -n ibm-common-services
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Render command
    render_parser = subparsers.add_parser("render", help="Print the desired Deployment as JSON")
    render_parser.add_argument("--image", required=True, help="Container image reference")
    render_parser.add_argument(
        "--namespace", "-n", default="default", help="Kubernetes namespace"
    )
    render_parser.add_argument(
        "--node-selector",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Node selector entry (repeatable)",
    )
    render_parser.add_argument("--allowed-host-header", default="", help="Allowed host headers")
    render_parser.add_argument("--client-id", default="", help="OAuth client id")
    render_parser.add_argument("--oidc-issuer-url", default="", help="OIDC issuer URL")
    render_parser.add_argument(
        "--replicas", type=int, default=1, help="Number of replicas (default: 1)"
    )
    render_parser.set_defaults(func=cmd_render)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show the Deployment and its pods")
    status_parser.add_argument(
        "--namespace", "-n", default="default", help="Kubernetes namespace"
    )
    status_parser.set_defaults(func=cmd_status)

    # Wait command
    wait_parser = subparsers.add_parser("wait", help="Wait for the Deployment to become ready")
    wait_parser.add_argument("name", nargs="?", default=crd.APP_NAME, help="Deployment name")
    wait_parser.add_argument(
        "--namespace", "-n", default="default", help="Kubernetes namespace"
    )
    wait_parser.add_argument(
        "--interval",
        type=float,
        default=settings.readiness_interval_s,
        help="Seconds between polls (default: %(default)s)",
    )
    wait_parser.add_argument(
        "--timeout",
        type=float,
        default=settings.readiness_timeout_s,
        help="Overall bound in seconds (default: %(default)s)",
    )
    wait_parser.set_defaults(func=cmd_wait)

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete the Deployment")
    delete_parser.add_argument("name", nargs="?", default=crd.APP_NAME, help="Deployment name")
    delete_parser.add_argument(
        "--namespace", "-n", default="default", help="Kubernetes namespace"
    )
    delete_parser.set_defaults(func=cmd_delete)

    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
