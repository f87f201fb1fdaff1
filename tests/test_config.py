from datetime import timedelta

import pytest

from spirectl.config import (
    ConfigError,
    ControllerHealth,
    ControllerManagerConfig,
    ControllerManagerConfigurationSpec,
    ControllerMetrics,
    LeaderElectionConfiguration,
    ManagerOptions,
    load_options_from_file,
    parse_duration,
)

FILE_CONTENT = """
apiVersion: spire.spiffe.io/v1alpha1
kind: ControllerManagerConfig
metrics:
  bindAddress: 127.0.0.1:8082
health:
  healthProbeBindAddress: 127.0.0.1:8083
leaderElection:
  leaderElect: true
  resourceName: 98c9c988.spiffe.io
  resourceNamespace: spire-system
clusterName: cluster2
trustDomain: cluster2.demo
ignoreNamespaces:
  - kube-system
  - kube-public
  - spire-system
  - local-path-storage
"""

HEADER = "apiVersion: spire.spiffe.io/v1alpha1\nkind: ControllerManagerConfig\n"


def _defaults():
    return ControllerManagerConfig(
        ignore_namespaces=["kube-system", "kube-public", "spire-system", "foo"],
        gc_interval=timedelta(minutes=1),
        validating_webhook_configuration_name="foo-webhook",
    )


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_load_options_from_file_replaces_default_values(tmp_path):
    path = _write(tmp_path, FILE_CONTENT)
    options = ManagerOptions()
    config = _defaults()

    load_options_from_file(path, options, config)

    expected = ControllerManagerConfig(
        api_version="spire.spiffe.io/v1alpha1",
        kind="ControllerManagerConfig",
        spec=ControllerManagerConfigurationSpec(
            leader_election=LeaderElectionConfiguration(
                leader_elect=True,
                resource_name="98c9c988.spiffe.io",
                resource_namespace="spire-system",
            ),
            metrics=ControllerMetrics(bind_address="127.0.0.1:8082"),
            health=ControllerHealth(health_probe_bind_address="127.0.0.1:8083"),
        ),
        cluster_name="cluster2",
        trust_domain="cluster2.demo",
        ignore_namespaces=["kube-system", "kube-public", "spire-system", "local-path-storage"],
        validating_webhook_configuration_name="foo-webhook",
        gc_interval=timedelta(minutes=1),
    )
    assert config == expected
    assert options.leader_election_namespace == "spire-system"
    assert options.leader_election is True
    assert options.leader_election_id == "98c9c988.spiffe.io"
    assert options.metrics_bind_address == "127.0.0.1:8082"
    assert options.health_probe_bind_address == "127.0.0.1:8083"


def test_load_options_from_file_invalid_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    options = ManagerOptions()
    config = _defaults()

    with pytest.raises(ConfigError) as excinfo:
        load_options_from_file("", options, config)
    assert str(excinfo.value) == "could not read file at : open : no such file or directory"

    with pytest.raises(ConfigError) as excinfo:
        load_options_from_file("foo.yaml", options, config)
    assert str(excinfo.value) == "could not read file at foo.yaml: open foo.yaml: no such file or directory"
    assert config == _defaults()


def test_existing_options_are_not_overridden(tmp_path):
    path = _write(tmp_path, FILE_CONTENT)
    options = ManagerOptions(metrics_bind_address=":9090", leader_election_id="mine")
    load_options_from_file(path, options, _defaults())
    assert options.metrics_bind_address == ":9090"
    assert options.leader_election_id == "mine"
    assert options.leader_election_namespace == "spire-system"


def test_durations_and_controller_section(tmp_path):
    path = _write(
        tmp_path,
        HEADER
        + "syncPeriod: 10h\n"
        + "cacheNamespace: spire\n"
        + "gcInterval: 30000000000\n"
        + "leaderElection:\n  leaseDuration: 15s\n  renewDeadline: 10s\n  retryPeriod: 2s\n"
        + "controller:\n  cacheSyncTimeout: 120000000000\n  groupKindConcurrency:\n    ReplicaSet.apps: 3\n",
    )
    options = ManagerOptions()
    config = _defaults()
    load_options_from_file(path, options, config)

    assert config.gc_interval == timedelta(seconds=30)
    assert options.sync_period == timedelta(hours=10)
    assert options.cache_namespaces == ["spire"]
    assert options.lease_duration == timedelta(seconds=15)
    assert options.renew_deadline == timedelta(seconds=10)
    assert options.retry_period == timedelta(seconds=2)
    assert options.cache_sync_timeout == timedelta(minutes=2)
    assert options.group_kind_concurrency == {"ReplicaSet.apps": 3}
    assert options.leader_election is False


def test_webhook_section_is_decoded(tmp_path):
    path = _write(tmp_path, HEADER + "webhook:\n  port: 9443\n  certDir: /tmp/certs\n")
    config = _defaults()
    load_options_from_file(path, ManagerOptions(), config)
    assert config.spec.webhook.port == 9443
    assert config.spec.webhook.cert_dir == "/tmp/certs"


def test_missing_kind_is_rejected(tmp_path):
    path = _write(tmp_path, "apiVersion: spire.spiffe.io/v1alpha1\nclusterName: c\n")
    config = _defaults()
    with pytest.raises(ConfigError, match="^could not decode file into runtime.Object: Object 'Kind' is missing"):
        load_options_from_file(path, ManagerOptions(), config)
    assert config == _defaults()


def test_unregistered_kind_is_rejected(tmp_path):
    path = _write(tmp_path, "apiVersion: v1\nkind: Pod\n")
    with pytest.raises(ConfigError, match='no kind "Pod" is registered for version "v1"'):
        load_options_from_file(path, ManagerOptions(), _defaults())


def test_wrong_field_type_leaves_config_untouched(tmp_path):
    path = _write(tmp_path, HEADER + "trustDomain: example.org\nclusterName: 5\n")
    config = _defaults()
    with pytest.raises(ConfigError, match="clusterName"):
        load_options_from_file(path, ManagerOptions(), config)
    assert config == _defaults()


def test_invalid_duration_string_is_rejected(tmp_path):
    path = _write(tmp_path, HEADER + "syncPeriod: soon\n")
    with pytest.raises(ConfigError, match='invalid duration "soon"'):
        load_options_from_file(path, ManagerOptions(), _defaults())


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("0", timedelta(0)),
        ("1m", timedelta(minutes=1)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5s", timedelta(seconds=1, milliseconds=500)),
        ("300ms", timedelta(milliseconds=300)),
        ("-2s", timedelta(seconds=-2)),
        ("10us", timedelta(microseconds=10)),
        (".5h", timedelta(minutes=30)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "1", "abc", "1x", ".s", "1h 2m"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError, match="invalid duration"):
        parse_duration(text)