"""Listing of cluster resources, namespaces and pods through a client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

from spirectl.types import (
    ClusterFederatedTrustDomain,
    ClusterSPIFFEID,
    ClusterStaticEntry,
    ObjectMeta,
)
from spirectl.webhooks import Selector


@dataclass
class Namespace:
    """A cluster namespace."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    api_version: str = "v1"
    kind: str = "Namespace"


@dataclass
class Pod:
    """A pod; ``spec`` holds its specification as plain data."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)
    api_version: str = "v1"
    kind: str = "Pod"


class _Client(Protocol):
    def list(
        self, kind: type, namespace: Optional[str] = None, selector: Optional[Selector] = None
    ) -> list[Any]: ...


class InMemoryClient:
    """A client over a fixed set of objects held in memory."""

    def __init__(self, objects: Iterable[Any] = ()) -> None:
        self._objects = list(objects)

    def list(
        self, kind: type, namespace: Optional[str] = None, selector: Optional[Selector] = None
    ) -> list[Any]:
        """Return objects of ``kind``, optionally restricted to a namespace and label selector.

        Results are ordered by namespace, then name.
        """
        found = [
            obj
            for obj in self._objects
            if isinstance(obj, kind)
            and (namespace is None or obj.metadata.namespace == namespace)
            and (selector is None or selector.matches(obj.metadata.labels))
        ]
        return sorted(found, key=lambda obj: (obj.metadata.namespace, obj.metadata.name))


def list_cluster_static_entries(client: _Client) -> list[ClusterStaticEntry]:
    """List every ClusterStaticEntry."""
    return list(client.list(ClusterStaticEntry))


def list_cluster_spiffeids(client: _Client) -> list[ClusterSPIFFEID]:
    """List every ClusterSPIFFEID."""
    return list(client.list(ClusterSPIFFEID))


def list_cluster_federated_trust_domains(client: _Client) -> list[ClusterFederatedTrustDomain]:
    """List every ClusterFederatedTrustDomain."""
    return list(client.list(ClusterFederatedTrustDomain))


def list_namespaces(client: _Client, namespace_selector: Optional[Selector] = None) -> list[Namespace]:
    """List namespaces, filtered by the selector when one is given."""
    return list(client.list(Namespace, selector=namespace_selector))


def list_namespace_pods(
    client: _Client, namespace: str, pod_selector: Optional[Selector] = None
) -> list[Pod]:
    """List the pods of one namespace, filtered by the selector when one is given."""
    return list(client.list(Pod, namespace=namespace, selector=pod_selector))