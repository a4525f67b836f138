"""Kubernetes client helpers."""

import base64
import logging

from kubernetes import client, config
from kubernetes.config import ConfigException
from kubernetes.client.rest import ApiException

from .errors import error_from_api_exception
from .settings import settings

logger = logging.getLogger(__name__)


def load_kube_config():
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except ConfigException:
        config.load_kube_config()
        logger.info("Loaded kubeconfig")


def _selector(labels):
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class DeploymentStore:
    """Deployment CRUD in one namespace.

    Every API failure surfaces as a ``WorkloadError``.
    """

    def __init__(self, apps_api, namespace, core_api=None):
        self.apps_api = apps_api
        self.core_api = core_api
        self.namespace = namespace

    @classmethod
    def from_config(cls, namespace):
        return cls(client.AppsV1Api(), namespace, core_api=client.CoreV1Api())

    def create(self, deployment):
        name = deployment.metadata.name
        try:
            return self.apps_api.create_namespaced_deployment(
                namespace=self.namespace, body=deployment
            )
        except ApiException as e:
            raise error_from_api_exception(e, "create", name) from e

    def get(self, name):
        try:
            return self.apps_api.read_namespaced_deployment(name=name, namespace=self.namespace)
        except ApiException as e:
            raise error_from_api_exception(e, "get", name) from e

    def update(self, deployment):
        """Replace ``deployment``; its resource version guards against lost updates."""
        name = deployment.metadata.name
        try:
            return self.apps_api.replace_namespaced_deployment(
                name=name, namespace=self.namespace, body=deployment
            )
        except ApiException as e:
            raise error_from_api_exception(e, "update", name) from e

    def delete(self, name):
        try:
            self.apps_api.delete_namespaced_deployment(name=name, namespace=self.namespace)
        except ApiException as e:
            raise error_from_api_exception(e, "delete", name) from e

    def list(self, selector):
        try:
            result = self.apps_api.list_namespaced_deployment(
                namespace=self.namespace, label_selector=_selector(selector)
            )
        except ApiException as e:
            raise error_from_api_exception(e, "list", _selector(selector)) from e
        return result.items

    def list_pods(self, selector):
        """List the pods matching ``selector``, e.g. the workload's own labels."""
        if self.core_api is None:
            raise RuntimeError("DeploymentStore has no core API client")
        try:
            result = self.core_api.list_namespaced_pod(
                namespace=self.namespace, label_selector=_selector(selector)
            )
        except ApiException as e:
            raise error_from_api_exception(e, "list pods", _selector(selector)) from e
        return result.items


def fetch_identity_config(core_api, iam_namespace):
    """Read the OIDC issuer URL and OAuth client id from the IAM namespace.

    Returns ``(oidc_issuer_url, client_id)``.
    """
    configmap_name = settings.auth_idp_configmap
    secret_name = settings.oidc_credentials_secret
    try:
        configmap = core_api.read_namespaced_config_map(name=configmap_name, namespace=iam_namespace)
    except ApiException as e:
        logger.error(f"Error reading configmap {iam_namespace}/{configmap_name}: {e.reason}")
        raise error_from_api_exception(e, "get configmap", configmap_name) from e
    try:
        secret = core_api.read_namespaced_secret(name=secret_name, namespace=iam_namespace)
    except ApiException as e:
        logger.error(f"Error reading secret {iam_namespace}/{secret_name}: {e.reason}")
        raise error_from_api_exception(e, "get secret", secret_name) from e

    oidc_url = (configmap.data or {}).get("OIDC_ISSUER_URL", "")
    encoded_client_id = (secret.data or {}).get("WLP_CLIENT_ID", "")
    client_id = base64.b64decode(encoded_client_id).decode("utf-8") if encoded_client_id else ""
    return oidc_url, client_id
