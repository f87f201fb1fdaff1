# spirectl

`spirectl` holds the building blocks of a controller manager that keeps SPIRE
Server registration state in step with the `spire.spiffe.io/v1alpha1` custom
resources `ClusterSPIFFEID`, `ClusterStaticEntry` and
`ClusterFederatedTrustDomain`.

## What is in the package

| Module | Contents |
| --- | --- |
| `spirectl.config` | `ControllerManagerConfig` and its nested settings, `ManagerOptions`, `load_options_from_file`, `parse_duration`, `ConfigError` |
| `spirectl.types` | dataclasses for the three custom resources, `ObjectMeta`, `LabelSelector`, `BundleEndpointProfileType` |
| `spirectl.webhooks` | `parse_cluster_spiffeid_spec`, `validate_cluster_spiffeid`, `trust_domain_from_string`, `label_selector_as_selector`, `parse_template`, `ValidationError` |
| `spirectl.reconciler` | `Reconciler`, an asyncio loop that reconciles on start, on `trigger()` and every GC interval |
| `spirectl.controllers` | reconcilers for each resource kind and for pods; each calls `trigger()` on a triggerer |
| `spirectl.namespace` | `is_ignored`, matching a namespace against ignore patterns |
| `spirectl.k8sapi` | `Namespace`, `Pod`, `InMemoryClient` and list helpers |
| `spirectl.cli` | `parse_config`, `parse_cluster_domain_cname`, `auto_detect_cluster_domain`, `main` |

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Command line

```
spirectl --config /etc/spire/controller-manager.yaml
```

Options (each also accepted with a single dash):

- `--config PATH`: configuration file to load.
- `--spire-api-socket PATH`: SPIRE Server socket path. Deprecated; used only
  when the file sets no `spireServerSocketPath`, and ignored with a logged
  error when it does.
- `--zap-log-level {debug,info,error}`: log level, `debug` by default.

The command loads and checks the configuration, then exits: status 0 when the
configuration is valid and the trust domain parses, 1 otherwise. It requires a
`trustDomain` and a `clusterName`; without `--config` no trust domain is set,
so the check fails.

A minimal configuration file:

```yaml
apiVersion: spire.spiffe.io/v1alpha1
kind: ControllerManagerConfig
clusterName: cluster2
trustDomain: cluster2.demo
ignoreNamespaces:
  - kube-system
  - kube-public
  - spire-system
```

`apiVersion` and `kind` must be exactly as above. Entries in
`ignoreNamespaces` are regular expressions, matched anywhere in the namespace
name. `gcInterval` is an integer number of nanoseconds; the leader election
durations and `syncPeriod` are duration strings such as `15s` or `1h30m`.

Defaults for settings the file leaves out:

| Setting | Default |
| --- | --- |
| `ignoreNamespaces` | `kube-system`, `kube-public`, `spire-system` |
| `spireServerSocketPath` | `/spire-server/api.sock` |
| `gcInterval` | 10 seconds |
| `validatingWebhookConfigurationName` | `spire-controller-manager-webhook` |

If `clusterDomain` is not set, it is derived from the canonical name of
`kubernetes.default.svc` (for example `kubernetes.default.svc.cluster.local.`
gives `cluster.local`); if that lookup fails the domain stays empty and an
error is logged.

## Library use

```python
import re
from spirectl.namespace import is_ignored

is_ignored([re.compile("kube-.*")], "kube-system")  # True
```

```python
from spirectl.config import ControllerManagerConfig, ManagerOptions, load_options_from_file

config = ControllerManagerConfig()
options = ManagerOptions()
load_options_from_file("config.yaml", options, config)
print(config.trust_domain, options.metrics_bind_address)
```

```python
from spirectl.types import ClusterSPIFFEIDSpec
from spirectl.webhooks import parse_cluster_spiffeid_spec

parsed = parse_cluster_spiffeid_spec(
    ClusterSPIFFEIDSpec(spiffe_id_template="spiffe://example.org/ns/{{ .PodMeta.Namespace }}")
)
print(parsed.spiffe_id_template.render({"PodMeta": {"Namespace": "default"}}))
```

```python
import asyncio
from spirectl.reconciler import Reconciler

reconciler = Reconciler("entry", lambda: print("reconciling"), gc_interval=10)
# asyncio.run(reconciler.run())  runs until cancelled
```

Templates support literal text, field paths such as `{{ .PodSpec.NodeName }}`,
string literals and comments; other template actions raise `ValidationError`.

## What it does not do

- It does not connect to a SPIRE Server or create, update or delete
  registration entries or federation relationships.
- It does not talk to a Kubernetes API server: `InMemoryClient` lists objects
  held in memory, and nothing watches the cluster for changes.
- It runs no admission webhook server and manages no webhook certificates.
- The `spirectl` command stops after checking the configuration; it starts no
  controllers or reconciliation loops.

## Running the tests

```
pytest
```