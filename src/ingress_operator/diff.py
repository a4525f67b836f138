"""Compare a live Deployment with the desired one."""

import copy
import logging

from kubernetes import client
from kubernetes.client import ApiClient
from kubernetes.utils import parse_quantity

logger = logging.getLogger(__name__)

# Maps the user owns entirely: a key missing from the desired side is a change.
EXACT_MAP_KEYS = frozenset({"labels", "matchLabels", "nodeSelector"})

# Resource lists; the API server stores their values in canonical form.
QUANTITY_MAP_KEYS = ("limits", "requests")

_serializer = ApiClient()


def _serialize(obj):
    return _serializer.sanitize_for_serialization(obj)


def _same_quantity(current, desired):
    try:
        return parse_quantity(current) == parse_quantity(desired)
    except ValueError:
        return current == desired


def _quantities_match(current, desired):
    if set(current) != set(desired):
        return False
    return all(_same_quantity(current[k], v) for k, v in desired.items())


def _annotations_match(current, desired):
    # Only the keys this operator sets; others (rollout restarts) are left alone.
    return all(k in current and current[k] == v for k, v in desired.items())


def _is_empty(value):
    return value is None or value == "" or value == [] or value == {}


def _matches(current, desired, key=None):
    """True when every field set on ``desired`` has the same value on ``current``.

    Fields left unset on the desired side are owned by the API server
    (defaulting), so they are not compared. The server omits empty strings
    and empty collections, so those equal a missing value.
    """
    if isinstance(desired, dict):
        if not isinstance(current, dict):
            return current is None and not desired
        if key in EXACT_MAP_KEYS:
            return current == desired
        if key == "resources":
            return all(
                _quantities_match(current.get(k) or {}, desired.get(k) or {})
                for k in QUANTITY_MAP_KEYS
            )
        if key == "annotations":
            return _annotations_match(current, desired)
        return all(_matches(current.get(k), v, k) for k, v in desired.items())
    if isinstance(desired, list):
        if current is None and not desired:
            return True
        if not isinstance(current, list) or len(current) != len(desired):
            return False
        return all(_matches(c, d) for c, d in zip(current, desired))
    if _is_empty(current) and _is_empty(desired):
        return True
    return current == desired


def controlled_fields(deployment):
    """The subset of a Deployment this operator owns."""
    data = _serialize(deployment)
    metadata = data.get("metadata") or {}
    spec = data.get("spec") or {}
    return {
        "metadata": {"labels": metadata.get("labels") or {}},
        "spec": {
            "replicas": spec.get("replicas"),
            "selector": spec.get("selector"),
            "template": spec.get("template"),
        },
    }


def _node_selector_matches(current, desired):
    # An absent node selector on the desired side must clear the live one.
    current_spec = current.spec.template.spec if current.spec and current.spec.template else None
    current_selector = (current_spec.node_selector if current_spec else None) or {}
    desired_selector = desired.spec.template.spec.node_selector or {}
    return current_selector == desired_selector


def _keep_template_annotations(merged, current):
    # Live pod-template annotations (such as kubectl rollout restart stamps) survive.
    live = current.spec.template.metadata if current.spec and current.spec.template else None
    if live is None or not live.annotations:
        return
    template = merged.spec.template
    if template.metadata is None:
        template.metadata = client.V1ObjectMeta()
    annotations = dict(live.annotations)
    annotations.update(template.metadata.annotations or {})
    template.metadata.annotations = annotations


def is_deployment_different(current, desired):
    """Return ``(merged, changed)`` for a live and a desired Deployment.

    ``merged`` is a copy of ``current`` carrying the desired labels, owner
    references and spec. It keeps the live resource version, so replacing it
    is checked against the version that was compared.
    """
    changed = not (
        _matches(controlled_fields(current), controlled_fields(desired))
        and _node_selector_matches(current, desired)
    )

    merged = copy.deepcopy(current)
    merged.metadata.labels = dict(desired.metadata.labels or {})
    if desired.metadata.owner_references:
        merged.metadata.owner_references = copy.deepcopy(desired.metadata.owner_references)
    if desired.metadata.annotations:
        annotations = dict(merged.metadata.annotations or {})
        annotations.update(desired.metadata.annotations)
        merged.metadata.annotations = annotations
    merged.spec = copy.deepcopy(desired.spec)
    _keep_template_annotations(merged, current)
    merged.metadata.resource_version = current.metadata.resource_version

    if changed:
        logger.debug(f"Deployment {current.metadata.name} differs from desired state")
    return merged, changed
