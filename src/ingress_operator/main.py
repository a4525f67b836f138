"""Main operator entrypoint using Kopf."""

import logging

import kopf
from kubernetes import client

from . import crd
from .errors import WorkloadError
from .events import KopfEventRecorder
from .k8s import DeploymentStore, load_kube_config
from .reconcile import ReconcileOutcome, reconcile_ingress
from .settings import settings as operator_settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, operator_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **kwargs):
    """Load the Kubernetes client configuration once the operator starts."""
    load_kube_config()
    settings.posting.level = logging.INFO


def _reconcile(spec, body, namespace):
    store = DeploymentStore(client.AppsV1Api(), namespace)
    return reconcile_ingress(
        spec,
        body,
        namespace,
        store=store,
        core_api=client.CoreV1Api(),
        recorder=KopfEventRecorder(body),
    )


def _failed_status(error):
    return {
        "phase": crd.PHASE_FAILED,
        "outcome": ReconcileOutcome.FAILED.value,
        "message": str(error),
    }


@kopf.on.create(crd.GROUP, crd.VERSION, crd.PLURAL)
@kopf.on.update(crd.GROUP, crd.VERSION, crd.PLURAL)
@kopf.on.resume(crd.GROUP, crd.VERSION, crd.PLURAL)
def ingress_handler(spec, body, name, namespace, patch, **kwargs):
    """Handle ManagementIngress create/update/resume events."""
    logger.info(f"Handling ManagementIngress {name} in namespace {namespace}")

    try:
        result = _reconcile(spec, body, namespace)
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        patch.status.update(_failed_status(e))
        raise kopf.PermanentError(str(e))
    except WorkloadError as e:
        logger.error(f"Reconciliation error: {e}")
        patch.status.update(_failed_status(e))
        if not e.retryable:
            raise kopf.PermanentError(str(e))
        raise kopf.TemporaryError(f"Reconciliation failed: {e}", delay=30)
    except Exception as e:
        logger.error(f"Reconciliation error: {e}", exc_info=True)
        patch.status.update(_failed_status(e))
        raise kopf.TemporaryError(f"Reconciliation failed: {e}", delay=30)

    # Overwrites any Failed phase left by an earlier pass.
    patch.status.update(result)


@kopf.timer(
    crd.GROUP,
    crd.VERSION,
    crd.PLURAL,
    interval=operator_settings.timer_interval_s,
    idle=operator_settings.timer_interval_s,
)
def ingress_timer(spec, body, name, namespace, status, patch, **kwargs):
    """Periodic reconciliation timer."""
    logger.debug(f"Timer reconciliation for ManagementIngress {name}")
    try:
        result = _reconcile(spec, body, namespace)
    except (ValueError, WorkloadError) as e:
        logger.error(f"Timer reconciliation error: {e}")
        return
    except Exception as e:
        logger.error(f"Timer reconciliation error: {e}", exc_info=True)
        return

    recovered = (status or {}).get("phase") != crd.PHASE_RUNNING
    if recovered or result["outcome"] != ReconcileOutcome.UNCHANGED.value:
        patch.status.update(result)


@kopf.on.delete(crd.GROUP, crd.VERSION, crd.PLURAL)
def ingress_delete(name, namespace, **kwargs):
    """Handle ManagementIngress deletion."""
    logger.info(f"ManagementIngress {name} deleted")
    # The Deployment carries an owner reference, so the garbage collector removes it.


if __name__ == "__main__":
    kopf.run()
