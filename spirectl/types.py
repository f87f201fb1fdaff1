"""Custom resource types: cluster SPIFFE IDs, federated trust domains and static entries."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from spirectl.config import GROUP_VERSION


@dataclass
class ObjectMeta:
    """Identifying metadata of a resource."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class LabelSelectorRequirement:
    """One expression of a label selector: ``key operator values``."""

    key: str
    operator: str
    values: list[str] = field(default_factory=list)


@dataclass
class LabelSelector:
    """Label query: exact labels plus set-based expressions, all ANDed."""

    match_labels: dict[str, str] = field(default_factory=dict)
    match_expressions: list[LabelSelectorRequirement] = field(default_factory=list)


class BundleEndpointProfileType(str, enum.Enum):
    """SPIFFE federation profile of a bundle endpoint."""

    HTTPS_SPIFFE = "https_spiffe"
    HTTPS_WEB = "https_web"


@dataclass
class BundleEndpointProfile:
    """Profile of a federated trust domain's bundle endpoint."""

    type: BundleEndpointProfileType | str = BundleEndpointProfileType.HTTPS_WEB
    endpoint_spiffe_id: str = ""


@dataclass
class ClusterFederatedTrustDomainSpec:
    """Desired state of a ClusterFederatedTrustDomain."""

    trust_domain: str = ""
    bundle_endpoint_url: str = ""
    bundle_endpoint_profile: BundleEndpointProfile = field(default_factory=BundleEndpointProfile)
    trust_domain_bundle: str = ""


@dataclass
class ClusterFederatedTrustDomain:
    """A trust domain to federate with."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ClusterFederatedTrustDomainSpec = field(default_factory=ClusterFederatedTrustDomainSpec)
    api_version: str = GROUP_VERSION
    kind: str = "ClusterFederatedTrustDomain"


@dataclass
class ClusterSPIFFEIDSpec:
    """Desired state of a ClusterSPIFFEID."""

    spiffe_id_template: str = ""
    ttl: timedelta = timedelta(0)
    dns_name_templates: list[str] = field(default_factory=list)
    workload_selector_templates: list[str] = field(default_factory=list)
    federates_with: list[str] = field(default_factory=list)
    namespace_selector: Optional[LabelSelector] = None
    pod_selector: Optional[LabelSelector] = None
    admin: bool = False
    downstream: bool = False


@dataclass
class ClusterSPIFFEIDStats:
    """Statistics from the last entry reconciliation run."""

    namespaces_selected: int = 0
    namespaces_ignored: int = 0
    pods_selected: int = 0
    pod_entry_render_failures: int = 0
    entries_masked: int = 0
    entries_to_set: int = 0
    entry_failures: int = 0

    def to_dict(self) -> dict[str, int]:
        """Return the stats keyed by their wire names."""
        return {
            "namespacesSelected": self.namespaces_selected,
            "namespacesIgnored": self.namespaces_ignored,
            "podsSelected": self.pods_selected,
            "podEntryRenderFailures": self.pod_entry_render_failures,
            "entriesMasked": self.entries_masked,
            "entriesToSet": self.entries_to_set,
            "entryFailures": self.entry_failures,
        }


@dataclass
class ClusterSPIFFEIDStatus:
    """Observed state of a ClusterSPIFFEID."""

    stats: ClusterSPIFFEIDStats = field(default_factory=ClusterSPIFFEIDStats)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {"stats": self.stats.to_dict()}


@dataclass
class ClusterSPIFFEID:
    """Template-driven SPIFFE ID assignment for selected pods."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ClusterSPIFFEIDSpec = field(default_factory=ClusterSPIFFEIDSpec)
    status: ClusterSPIFFEIDStatus = field(default_factory=ClusterSPIFFEIDStatus)
    api_version: str = GROUP_VERSION
    kind: str = "ClusterSPIFFEID"


@dataclass
class ClusterStaticEntrySpec:
    """Desired state of a ClusterStaticEntry."""

    spiffe_id: str = ""
    parent_id: str = ""
    selectors: list[str] = field(default_factory=list)
    federates_with: list[str] = field(default_factory=list)
    x509_svid_ttl: timedelta = timedelta(0)
    jwt_svid_ttl: timedelta = timedelta(0)
    dns_names: list[str] = field(default_factory=list)
    hint: str = ""
    admin: bool = False
    downstream: bool = False


@dataclass
class ClusterStaticEntryStatus:
    """Observed state of a ClusterStaticEntry."""

    rendered: bool = False
    masked: bool = False
    set: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"rendered": self.rendered, "masked": self.masked, "set": self.set}


@dataclass
class ClusterStaticEntry:
    """A registration entry declared directly."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ClusterStaticEntrySpec = field(default_factory=ClusterStaticEntrySpec)
    status: ClusterStaticEntryStatus = field(default_factory=ClusterStaticEntryStatus)
    api_version: str = GROUP_VERSION
    kind: str = "ClusterStaticEntry"