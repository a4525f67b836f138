"""Kubernetes resource templates for the management ingress workload."""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from kubernetes import client

from . import crd

DEFAULT_MEMORY = "256Mi"
DEFAULT_CPU_REQUEST = "200m"
TERMINATION_GRACE_PERIOD_SECONDS = 30
TLS_VOLUME_NAME = "tls-secret"
TLS_MOUNT_PATH = "/var/run/secrets/tls"

INFRASTRUCTURE_TOLERATION_KEYS = (
    "node.kubernetes.io/memory-pressure",
    "node.kubernetes.io/disk-pressure",
)


@dataclass(frozen=True)
class ContainerEnvironment:
    """Every environment variable the ingress container understands."""

    allowed_host_headers: str = ""
    oidc_issuer_url: str = ""
    client_id: str = ""
    enable_impersonation: bool = False
    apiserver_secure_port: int = 6443
    cluster_domain: str = "mycluster.cp"
    fips_enabled: bool = False

    @property
    def host_headers_check_enabled(self) -> bool:
        return len(self.allowed_host_headers) > 0

    def to_env_vars(self) -> List[client.V1EnvVar]:
        return [
            client.V1EnvVar(name="ENABLE_IMPERSONATION", value=_bool(self.enable_impersonation)),
            client.V1EnvVar(name="APISERVER_SECURE_PORT", value=str(self.apiserver_secure_port)),
            client.V1EnvVar(name="CLUSTER_DOMAIN", value=self.cluster_domain),
            client.V1EnvVar(
                name="HOST_HEADERS_CHECK_ENABLED", value=_bool(self.host_headers_check_enabled)
            ),
            client.V1EnvVar(name="ALLOWED_HOST_HEADERS", value=self.allowed_host_headers),
            client.V1EnvVar(name="OIDC_ISSUER_URL", value=self.oidc_issuer_url),
            client.V1EnvVar(name="WLP_CLIENT_ID", value=self.client_id),
            _field_ref_env("POD_NAME", "metadata.name"),
            _field_ref_env("POD_NAMESPACE", "metadata.namespace"),
            client.V1EnvVar(name="FIPS_ENABLED", value=_bool(self.fips_enabled)),
        ]


@dataclass(frozen=True)
class WorkloadConfig:
    """Inputs of a single desired-state build."""

    image: str
    resources: Optional[client.V1ResourceRequirements] = None
    node_selector: Mapping[str, str] = field(default_factory=dict)
    tolerations: List[client.V1Toleration] = field(default_factory=list)
    allowed_host_header: str = ""
    client_id: str = ""
    oidc_issuer_url: str = ""
    replicas: int = 1

    @classmethod
    def from_spec(cls, spec, client_id="", oidc_issuer_url=""):
        """Build a config from a ManagementIngress ``spec`` mapping."""
        resources = spec.get("resources")
        return cls(
            image=spec["imageRepo"],
            resources=_resource_requirements(resources) if resources else None,
            node_selector=dict(spec.get("nodeSelector") or {}),
            tolerations=[_toleration(t) for t in spec.get("tolerations") or []],
            allowed_host_header=spec.get("allowedHostHeader") or "",
            client_id=client_id,
            oidc_issuer_url=oidc_issuer_url,
            replicas=int(spec.get("replicas", 1)),
        )

    @property
    def environment(self) -> ContainerEnvironment:
        return ContainerEnvironment(
            allowed_host_headers=self.allowed_host_header,
            oidc_issuer_url=self.oidc_issuer_url,
            client_id=self.client_id,
        )


def workload_labels() -> Dict[str, str]:
    return {
        "component": crd.APP_NAME,
        "app": crd.APP_NAME,
    }


def default_resources() -> client.V1ResourceRequirements:
    return client.V1ResourceRequirements(
        limits={"memory": DEFAULT_MEMORY},
        requests={"memory": DEFAULT_MEMORY, "cpu": DEFAULT_CPU_REQUEST},
    )


def infrastructure_tolerations() -> List[client.V1Toleration]:
    return [
        client.V1Toleration(key=key, operator="Exists", effect="NoSchedule")
        for key in INFRASTRUCTURE_TOLERATION_KEYS
    ]


def _health_probe(failure_threshold=None) -> client.V1Probe:
    return client.V1Probe(
        http_get=client.V1HTTPGetAction(
            path=crd.HEALTH_PATH,
            port=crd.HTTP_PORT,
            scheme="HTTP",
        ),
        initial_delay_seconds=10,
        period_seconds=10,
        timeout_seconds=1,
        failure_threshold=failure_threshold,
    )


def create_container(config: WorkloadConfig) -> client.V1Container:
    """Create the ingress container."""
    return client.V1Container(
        name=crd.APP_NAME,
        image=config.image,
        image_pull_policy="IfNotPresent",
        resources=config.resources or default_resources(),
        ports=[
            client.V1ContainerPort(name="https", container_port=crd.HTTPS_PORT, protocol="TCP"),
            client.V1ContainerPort(name="http", container_port=crd.HTTP_PORT, protocol="TCP"),
        ],
        command=[
            crd.ENTRYPOINT,
            f"--default-ssl-certificate=$(POD_NAMESPACE)/{crd.TLS_SECRET_NAME}",
            f"--configmap=$(POD_NAMESPACE)/{crd.CONFIGMAP_NAME}",
            f"--http-port={crd.HTTP_PORT}",
            f"--https-port={crd.HTTPS_PORT}",
        ],
        env=config.environment.to_env_vars(),
        security_context=client.V1SecurityContext(
            privileged=False,
            allow_privilege_escalation=False,
        ),
        liveness_probe=_health_probe(failure_threshold=10),
        readiness_probe=_health_probe(),
        volume_mounts=[
            client.V1VolumeMount(name=TLS_VOLUME_NAME, mount_path=TLS_MOUNT_PATH),
        ],
    )


def create_pod_spec(config: WorkloadConfig) -> client.V1PodSpec:
    """Create the pod spec of the ingress workload."""
    return client.V1PodSpec(
        containers=[create_container(config)],
        service_account_name=crd.SERVICE_ACCOUNT_NAME,
        node_selector=dict(config.node_selector) or None,
        # Appended unconditionally; avoiding duplicates is up to the caller.
        tolerations=list(config.tolerations) + infrastructure_tolerations(),
        volumes=[
            client.V1Volume(
                name=TLS_VOLUME_NAME,
                secret=client.V1SecretVolumeSource(
                    secret_name=crd.TLS_SECRET_NAME,
                    default_mode=0o644,
                ),
            )
        ],
        termination_grace_period_seconds=TERMINATION_GRACE_PERIOD_SECONDS,
    )


def create_deployment_manifest(name, namespace, pod_spec, replicas=1) -> client.V1Deployment:
    """Create the Deployment manifest wrapping ``pod_spec``."""
    labels = workload_labels()
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=dict(labels),
        ),
        spec=client.V1DeploymentSpec(
            replicas=replicas,
            selector=client.V1LabelSelector(match_labels=dict(labels)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(
                    name=name,
                    labels=dict(labels),
                    annotations={crd.CRITICAL_POD_ANNOTATION: ""},
                ),
                spec=pod_spec,
            ),
        ),
    )


def build_desired_deployment(namespace, config: WorkloadConfig) -> client.V1Deployment:
    return create_deployment_manifest(
        crd.APP_NAME,
        namespace,
        create_pod_spec(config),
        replicas=config.replicas,
    )


def _bool(value):
    return "true" if value else "false"


def _field_ref_env(name, field_path):
    return client.V1EnvVar(
        name=name,
        value_from=client.V1EnvVarSource(
            field_ref=client.V1ObjectFieldSelector(api_version="v1", field_path=field_path)
        ),
    )


def _resource_requirements(resources):
    return client.V1ResourceRequirements(
        limits=dict(resources.get("limits") or {}) or None,
        requests=dict(resources.get("requests") or {}) or None,
    )


def _toleration(toleration):
    return client.V1Toleration(
        key=toleration.get("key"),
        operator=toleration.get("operator"),
        value=toleration.get("value"),
        effect=toleration.get("effect"),
        toleration_seconds=toleration.get("tolerationSeconds"),
    )
