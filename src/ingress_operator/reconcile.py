"""Core reconciliation logic."""

import logging
from enum import Enum

from . import crd
from .diff import is_deployment_different
from .errors import ErrorKind, WorkloadError
from .events import NORMAL, WARNING
from .k8s import fetch_identity_config
from .ownership import OwnerRef, bind_owner
from .templates import WorkloadConfig, build_desired_deployment

logger = logging.getLogger(__name__)

CREATED_REASON = "CreatedDeployment"
UPDATED_REASON = "UpdatedDeployment"
RECONCILE_FAILED_REASON = "ReconcileFailed"


class ReconcileOutcome(Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    UNCHANGED = "Unchanged"
    FAILED = "Failed"


def create_or_update_deployment(store, desired, recorder, owner_name):
    """Create ``desired`` or bring the existing Deployment in line with it.

    ``desired`` must already carry its owner reference. Returns the outcome;
    failures emit one Warning event and raise ``WorkloadError``. Conflicts
    from concurrent writers are not retried here.
    """
    name = desired.metadata.name
    logger.info(f"Creating or updating Deployment {name} for {owner_name}")

    try:
        store.create(desired)
    except WorkloadError as e:
        if e.kind != ErrorKind.ALREADY_EXISTS:
            error = e.with_owner(owner_name)
            recorder.record(WARNING, CREATED_REASON, f"Failure creating deployment {name!r}: {error}")
            raise error from e
    else:
        recorder.record(NORMAL, CREATED_REASON, f"Successfully created deployment {name!r}")
        return ReconcileOutcome.CREATED

    try:
        current = store.get(name)
    except WorkloadError as e:
        # Create just reported the object as existing, so NotFound is an anomaly too.
        error = e.with_owner(owner_name)
        recorder.record(WARNING, UPDATED_REASON, f"Failure getting deployment {name!r}: {error}")
        raise error from e

    merged, changed = is_deployment_different(current, desired)
    if not changed:
        logger.debug(f"Deployment {name} is up to date")
        return ReconcileOutcome.UNCHANGED

    logger.info(f"Deployment {name} differs from desired state, updating it")
    try:
        store.update(merged)
    except WorkloadError as e:
        error = e.with_owner(owner_name)
        recorder.record(WARNING, UPDATED_REASON, f"Failure updating deployment {name!r}: {error}")
        raise error from e

    recorder.record(NORMAL, UPDATED_REASON, f"Successfully updated deployment {name!r}")
    return ReconcileOutcome.UPDATED


def remove_deployment(store, name, owner_name=None):
    """Delete the Deployment ``name``; a missing Deployment counts as deleted."""
    logger.info(f"Deleting Deployment {name} for {owner_name}")
    try:
        store.delete(name)
    except WorkloadError as e:
        if e.kind == ErrorKind.NOT_FOUND:
            logger.debug(f"Deployment {name} already gone")
            return
        raise e.with_owner(owner_name) from e


def _desired_for(spec, namespace, core_api, owner):
    iam_namespace = spec.get("iamNamespace")
    if not iam_namespace:
        raise ValueError(f"ManagementIngress {owner.name} has no iamNamespace")
    if not spec.get("imageRepo"):
        raise ValueError(f"ManagementIngress {owner.name} has no imageRepo")

    try:
        oidc_url, client_id = fetch_identity_config(core_api, iam_namespace)
    except WorkloadError as e:
        raise e.with_owner(owner.name) from e

    config = WorkloadConfig.from_spec(spec, client_id=client_id, oidc_issuer_url=oidc_url)
    return bind_owner(build_desired_deployment(namespace, config), owner)


def reconcile_ingress(spec, body, namespace, store, core_api, recorder):
    """Reconcile the Deployment of one ManagementIngress.

    Returns a status patch for the custom resource.
    """
    owner = OwnerRef.from_body(body)
    try:
        desired = _desired_for(spec, namespace, core_api, owner)
    except (ValueError, WorkloadError) as e:
        recorder.record(WARNING, RECONCILE_FAILED_REASON, str(e))
        raise

    outcome = create_or_update_deployment(store, desired, recorder, owner.name)
    return {
        "phase": crd.PHASE_RUNNING,
        "deployment": desired.metadata.name,
        "outcome": outcome.value,
        "message": f"Deployment {desired.metadata.name} {outcome.value.lower()}",
    }
