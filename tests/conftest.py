import copy
from types import SimpleNamespace

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from ingress_operator.k8s import DeploymentStore
from ingress_operator.ownership import OwnerRef


class FakeAppsApi:
    """In-memory AppsV1Api that behaves like the API server for Deployments."""

    def __init__(self, fail=None, canonical=None):
        self.deployments = {}
        self.fail = dict(fail or {})
        # Quantity spellings the server rewrites, e.g. {"1024Mi": "1Gi"}.
        self.canonical = dict(canonical or {})
        self.calls = []
        self._version = 0
        self.write_count = 0

    def _next_version(self):
        self._version += 1
        return str(self._version)

    def _maybe_fail(self, operation):
        status = self.fail.get(operation)
        if status:
            raise ApiException(status=status, reason="injected")

    def _apply_server_defaults(self, deployment):
        deployment.spec.progress_deadline_seconds = 600
        deployment.spec.revision_history_limit = 10
        for container in deployment.spec.template.spec.containers:
            container.termination_message_path = "/dev/termination-log"
            for env in container.env or []:
                if env.value == "":
                    env.value = None
            if container.resources:
                for quantities in (container.resources.limits, container.resources.requests):
                    for key, value in (quantities or {}).items():
                        quantities[key] = self.canonical.get(value, value)
        deployment.spec.template.spec.dns_policy = "ClusterFirst"
        deployment.spec.template.spec.restart_policy = "Always"

    def create_namespaced_deployment(self, namespace, body):
        self.calls.append(("create", body))
        self._maybe_fail("create")
        name = body.metadata.name
        if name in self.deployments:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        stored.metadata.namespace = namespace
        stored.metadata.uid = f"uid-{name}"
        stored.metadata.resource_version = self._next_version()
        stored.metadata.generation = 1
        stored.metadata.annotations = {"deployment.kubernetes.io/revision": "1"}
        stored.status = client.V1DeploymentStatus(replicas=0, ready_replicas=None)
        self._apply_server_defaults(stored)
        self.deployments[name] = stored
        self.write_count += 1
        return copy.deepcopy(stored)

    def read_namespaced_deployment(self, name, namespace):
        self.calls.append(("get", name))
        self._maybe_fail("get")
        if name not in self.deployments:
            raise ApiException(status=404, reason="NotFound")
        return copy.deepcopy(self.deployments[name])

    def replace_namespaced_deployment(self, name, namespace, body):
        self.calls.append(("update", body))
        self._maybe_fail("update")
        if name not in self.deployments:
            raise ApiException(status=404, reason="NotFound")
        live = self.deployments[name]
        if body.metadata.resource_version != live.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(body)
        stored.metadata.resource_version = self._next_version()
        stored.metadata.generation = (live.metadata.generation or 0) + 1
        stored.status = live.status
        self._apply_server_defaults(stored)
        self.deployments[name] = stored
        self.write_count += 1
        return copy.deepcopy(stored)

    def delete_namespaced_deployment(self, name, namespace):
        self.calls.append(("delete", name))
        self._maybe_fail("delete")
        if name not in self.deployments:
            raise ApiException(status=404, reason="NotFound")
        del self.deployments[name]
        self.write_count += 1

    def list_namespaced_deployment(self, namespace, label_selector):
        self.calls.append(("list", label_selector))
        wanted = dict(pair.split("=", 1) for pair in label_selector.split(",") if pair)
        items = [
            copy.deepcopy(d)
            for d in self.deployments.values()
            if all((d.metadata.labels or {}).get(k) == v for k, v in wanted.items())
        ]
        return SimpleNamespace(items=items)


class RecordingEvents:
    def __init__(self):
        self.events = []

    def record(self, type, reason, message):
        self.events.append((type, reason, message))


@pytest.fixture
def apps_api():
    return FakeAppsApi()


@pytest.fixture
def store(apps_api):
    return DeploymentStore(apps_api, "ingress-ns")


@pytest.fixture
def recorder():
    return RecordingEvents()


@pytest.fixture
def owner():
    return OwnerRef(name="default", uid="2f4a-11ee")


@pytest.fixture
def canonical_store():
    """A store whose server rewrites quantities into their canonical spelling."""
    return DeploymentStore(
        FakeAppsApi(canonical={"1024Mi": "1Gi", "0.5": "500m"}), "ingress-ns"
    )
