import pytest

from spirectl.k8sapi import (
    InMemoryClient,
    Namespace,
    Pod,
    list_cluster_federated_trust_domains,
    list_cluster_spiffeids,
    list_cluster_static_entries,
    list_namespace_pods,
    list_namespaces,
)
from spirectl.types import (
    ClusterFederatedTrustDomain,
    ClusterSPIFFEID,
    ClusterStaticEntry,
    LabelSelector,
    ObjectMeta,
)
from spirectl.webhooks import label_selector_as_selector


class ListError(Exception):
    pass


class FailingClient:
    def list(self, kind, namespace=None, selector=None):
        raise ListError("list error")


def test_list_cluster_spiffeids():
    foo = ClusterSPIFFEID(metadata=ObjectMeta(name="foo"))
    with pytest.raises(ListError, match="list error"):
        list_cluster_spiffeids(FailingClient())
    assert list_cluster_spiffeids(InMemoryClient()) == []
    assert list_cluster_spiffeids(InMemoryClient([foo])) == [foo]


def test_list_cluster_federated_trust_domains():
    foo = ClusterFederatedTrustDomain(metadata=ObjectMeta(name="foo"))
    with pytest.raises(ListError, match="list error"):
        list_cluster_federated_trust_domains(FailingClient())
    assert list_cluster_federated_trust_domains(InMemoryClient()) == []
    assert list_cluster_federated_trust_domains(InMemoryClient([foo])) == [foo]


def test_list_cluster_static_entries():
    foo = ClusterStaticEntry(metadata=ObjectMeta(name="foo"))
    with pytest.raises(ListError, match="list error"):
        list_cluster_static_entries(FailingClient())
    assert list_cluster_static_entries(InMemoryClient()) == []
    assert list_cluster_static_entries(InMemoryClient([foo])) == [foo]


def test_list_only_returns_requested_kind():
    spiffeid = ClusterSPIFFEID(metadata=ObjectMeta(name="foo"))
    entry = ClusterStaticEntry(metadata=ObjectMeta(name="foo"))
    client = InMemoryClient([spiffeid, entry])
    assert list_cluster_spiffeids(client) == [spiffeid]
    assert list_cluster_static_entries(client) == [entry]


NS1 = Namespace(metadata=ObjectMeta(name="ns1", labels={"widget": "foo"}))
NS2 = Namespace(metadata=ObjectMeta(name="ns2", labels={"widget": "bar"}))


def test_list_namespaces_fails():
    with pytest.raises(ListError, match="list error"):
        list_namespaces(FailingClient(), None)


def test_list_namespaces_empty():
    assert list_namespaces(InMemoryClient(), None) == []


def test_list_namespaces_not_empty():
    assert list_namespaces(InMemoryClient([NS2, NS1]), None) == [NS1, NS2]


def test_list_namespaces_filtered_by_labels():
    selector = label_selector_as_selector(LabelSelector(match_labels=NS2.metadata.labels))
    assert list_namespaces(InMemoryClient([NS1, NS2]), selector) == [NS2]


POD1 = Pod(metadata=ObjectMeta(namespace="ns1", name="pod1", labels={"widget": "foo"}))
POD2 = Pod(metadata=ObjectMeta(namespace="ns1", name="pod2", labels={"widget": "bar"}))
POD3 = Pod(metadata=ObjectMeta(namespace="ns2", name="pod3", labels={"widget": "bar"}))
OBJECTS = [POD1, POD2, POD3]


def test_list_namespace_pods_fails():
    with pytest.raises(ListError, match="list error"):
        list_namespace_pods(FailingClient(), "ns1", None)


def test_list_namespace_pods_empty():
    assert list_namespace_pods(InMemoryClient(), "ns1", None) == []


def test_list_namespace_pods_not_empty():
    assert list_namespace_pods(InMemoryClient(OBJECTS), "ns1", None) == [POD1, POD2]


def test_list_namespace_pods_filtered_by_labels():
    selector = label_selector_as_selector(LabelSelector(match_labels=POD2.metadata.labels))
    assert list_namespace_pods(InMemoryClient(OBJECTS), "ns1", selector) == [POD2]