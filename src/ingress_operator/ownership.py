"""Owner references binding the workload to its ManagementIngress."""

from dataclasses import dataclass

from kubernetes.client import V1OwnerReference

from . import crd


@dataclass(frozen=True)
class OwnerRef:
    name: str
    uid: str
    kind: str = crd.KIND
    api_version: str = crd.API_VERSION

    @classmethod
    def from_body(cls, body):
        """Build an owner from a custom resource body as handed over by kopf."""
        metadata = body["metadata"]
        return cls(
            name=metadata["name"],
            uid=metadata["uid"],
            kind=body.get("kind", crd.KIND),
            api_version=body.get("apiVersion", crd.API_VERSION),
        )

    def as_owner_reference(self) -> V1OwnerReference:
        return V1OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=True,
            block_owner_deletion=True,
        )


def bind_owner(resource, owner: OwnerRef):
    """Attach ``owner`` as the single owner reference of ``resource``.

    Must run once per freshly built resource, before it is sent to the API
    server, so the very first create is already garbage-collectable.
    """
    if not owner.uid:
        raise ValueError(f"Owner {owner.name!r} has no uid")
    if resource.metadata.owner_references:
        raise ValueError(f"{resource.metadata.name} already has an owner reference")
    resource.metadata.owner_references = [owner.as_owner_reference()]
    return resource
