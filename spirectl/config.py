"""Controller manager configuration: types, file loading and option merging."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field, fields
from datetime import timedelta
from fractions import Fraction
from typing import Any, Callable, Optional

import yaml

GROUP = "spire.spiffe.io"
VERSION = "v1alpha1"
GROUP_VERSION = f"{GROUP}/{VERSION}"
CONFIG_KIND = "ControllerManagerConfig"


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or decoded."""


_UNIT_NS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_COMPONENT_RE = re.compile(_COMPONENT)
_DURATION_RE = re.compile(r"([+-]?)((?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+)")
_MAX_NS = 2**63 - 1


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m``, ``1.5s`` or ``300ms``."""
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    match = _DURATION_RE.fullmatch(text)
    if match is None:
        raise ValueError(f'time: invalid duration "{text}"')
    total = sum(
        (Fraction(number) * _UNIT_NS[unit] for number, unit in _COMPONENT_RE.findall(match.group(2))),
        Fraction(0),
    )
    if total > _MAX_NS:
        raise ValueError(f'time: invalid duration "{text}"')
    micros = round(total / 1000)
    return timedelta(microseconds=-micros if match.group(1) == "-" else micros)


# --- decoding helpers -------------------------------------------------------

_Decoder = Callable[[Any, Any, str], Any]


def _json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _type_error(where: str, value: Any, expected: str) -> ConfigError:
    return ConfigError(f"cannot unmarshal {_json_type(value)} into field {where} of type {expected}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _scalar(check: Callable[[Any], bool], expected: str, optional: bool = False) -> _Decoder:
    def decode(current, value, where):
        if value is None:
            return None if optional else current
        if not check(value):
            raise _type_error(where, value, expected)
        return value

    return decode


def _str_list(current, value, where):
    if value is None:
        return []
    if not isinstance(value, list):
        raise _type_error(where, value, "[]string")
    for item in value:
        if not isinstance(item, str):
            raise _type_error(where, item, "string")
    return list(value)


def _int_map(current, value, where):
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _type_error(where, value, "map[string]int")
    merged = dict(current or {})
    for key, item in value.items():
        if not isinstance(key, str) or not _is_int(item):
            raise _type_error(f"{where}.{key}", item, "int")
        merged[key] = item
    return merged


def _duration_string(optional: bool = False) -> _Decoder:
    def decode(current, value, where):
        if value is None:
            return None if optional else current
        if not isinstance(value, str):
            raise _type_error(where, value, "string")
        try:
            return parse_duration(value)
        except ValueError as exc:
            raise ConfigError(f"{where}: {exc}") from None

    return decode


def _nanoseconds(optional: bool = False) -> _Decoder:
    def decode(current, value, where):
        if value is None:
            return None if optional else current
        if not _is_int(value):
            raise _type_error(where, value, "time.Duration")
        return timedelta(microseconds=round(Fraction(value, 1000)))

    return decode


def _nested(cls: type, optional: bool = False) -> _Decoder:
    def decode(current, value, where):
        if value is None:
            return None if optional else current
        target = current if current is not None else cls()
        _merge(target, value, where)
        return target

    return decode


def _merge(obj: Any, data: Any, where: str) -> None:
    if not isinstance(data, dict):
        raise _type_error(where or "<root>", data, "object")
    for f in fields(obj):
        if f.metadata.get("inline"):
            _merge(getattr(obj, f.name), data, where)
            continue
        key = f.metadata.get("json")
        if key is None or key not in data:
            continue
        path = f"{where}.{key}" if where else key
        setattr(obj, f.name, f.metadata["decode"](getattr(obj, f.name), data[key], path))


def _field(key: str, decode: _Decoder, default: Any) -> Any:
    return field(default=default, metadata={"json": key, "decode": decode})


def _field_factory(key: str, decode: _Decoder, factory: Callable[[], Any]) -> Any:
    return field(default_factory=factory, metadata={"json": key, "decode": decode})


_STR = _scalar(lambda v: isinstance(v, str), "string")
_OPT_BOOL = _scalar(lambda v: isinstance(v, bool), "bool", optional=True)
_OPT_INT = _scalar(_is_int, "int", optional=True)


# --- configuration types ----------------------------------------------------


@dataclass
class LeaderElectionConfiguration:
    """Leader election settings for the manager."""

    leader_elect: Optional[bool] = _field("leaderElect", _OPT_BOOL, None)
    lease_duration: timedelta = _field("leaseDuration", _duration_string(), timedelta(0))
    renew_deadline: timedelta = _field("renewDeadline", _duration_string(), timedelta(0))
    retry_period: timedelta = _field("retryPeriod", _duration_string(), timedelta(0))
    resource_lock: str = _field("resourceLock", _STR, "")
    resource_name: str = _field("resourceName", _STR, "")
    resource_namespace: str = _field("resourceNamespace", _STR, "")


@dataclass
class ControllerConfigurationSpec:
    """Global settings for controllers registered with the manager."""

    group_kind_concurrency: dict[str, int] = _field_factory("groupKindConcurrency", _int_map, dict)
    cache_sync_timeout: Optional[timedelta] = _field("cacheSyncTimeout", _nanoseconds(True), None)
    recover_panic: Optional[bool] = _field("recoverPanic", _OPT_BOOL, None)


@dataclass
class ControllerMetrics:
    """Metrics serving settings."""

    bind_address: str = _field("bindAddress", _STR, "")


@dataclass
class ControllerHealth:
    """Health probe settings."""

    health_probe_bind_address: str = _field("healthProbeBindAddress", _STR, "")
    readiness_endpoint_name: str = _field("readinessEndpointName", _STR, "")
    liveness_endpoint_name: str = _field("livenessEndpointName", _STR, "")


@dataclass
class ControllerWebhook:
    """Webhook server settings."""

    port: Optional[int] = _field("port", _OPT_INT, None)
    host: str = _field("host", _STR, "")
    cert_dir: str = _field("certDir", _STR, "")


@dataclass
class ControllerManagerConfigurationSpec:
    """Generic controller manager settings."""

    sync_period: Optional[timedelta] = _field("syncPeriod", _duration_string(True), None)
    leader_election: Optional[LeaderElectionConfiguration] = _field(
        "leaderElection", _nested(LeaderElectionConfiguration, True), None
    )
    cache_namespace: str = _field("cacheNamespace", _STR, "")
    graceful_shutdown_timeout: Optional[timedelta] = _field(
        "gracefulShutDown", _duration_string(True), None
    )
    controller: Optional[ControllerConfigurationSpec] = _field(
        "controller", _nested(ControllerConfigurationSpec, True), None
    )
    metrics: ControllerMetrics = _field_factory("metrics", _nested(ControllerMetrics), ControllerMetrics)
    health: ControllerHealth = _field_factory("health", _nested(ControllerHealth), ControllerHealth)
    webhook: ControllerWebhook = _field_factory("webhook", _nested(ControllerWebhook), ControllerWebhook)


@dataclass
class ControllerManagerConfig:
    """The controller manager configuration document."""

    api_version: str = _field("apiVersion", _STR, "")
    kind: str = _field("kind", _STR, "")
    spec: ControllerManagerConfigurationSpec = field(
        default_factory=ControllerManagerConfigurationSpec, metadata={"inline": True}
    )
    cluster_name: str = _field("clusterName", _STR, "")
    cluster_domain: str = _field("clusterDomain", _STR, "")
    trust_domain: str = _field("trustDomain", _STR, "")
    ignore_namespaces: list[str] = _field_factory("ignoreNamespaces", _str_list, list)
    validating_webhook_configuration_name: str = _field("validatingWebhookConfigurationName", _STR, "")
    gc_interval: timedelta = _field("gcInterval", _nanoseconds(), timedelta(0))
    spire_server_socket_path: str = _field("spireServerSocketPath", _STR, "")


@dataclass
class ManagerOptions:
    """Options used to start the manager."""

    leader_election: bool = False
    leader_election_resource_lock: str = ""
    leader_election_namespace: str = ""
    leader_election_id: str = ""
    lease_duration: Optional[timedelta] = None
    renew_deadline: Optional[timedelta] = None
    retry_period: Optional[timedelta] = None
    sync_period: Optional[timedelta] = None
    cache_namespaces: list[str] = field(default_factory=list)
    metrics_bind_address: str = ""
    health_probe_bind_address: str = ""
    readiness_endpoint_name: str = ""
    liveness_endpoint_name: str = ""
    cache_sync_timeout: timedelta = timedelta(0)
    group_kind_concurrency: dict[str, int] = field(default_factory=dict)


# --- loading ----------------------------------------------------------------


def load_options_from_file(path: str, options: ManagerOptions, config: ControllerManagerConfig) -> None:
    """Overlay the file at ``path`` onto ``config`` and fill unset ``options`` from it."""
    _load_file(path, config)
    _add_options_from_config_spec(options, config.spec)


def _os_reason(exc: OSError) -> str:
    reason = exc.strerror or str(exc)
    return reason[:1].lower() + reason[1:]


def _load_file(path: str, config: ControllerManagerConfig) -> None:
    try:
        with open(path, "rb") as fh:
            content = fh.read()
    except OSError as exc:
        raise ConfigError(f"could not read file at {path}: open {path}: {_os_reason(exc)}") from exc
    try:
        decoded = _decode(content, config)
    except ConfigError as exc:
        raise ConfigError(f"could not decode file into runtime.Object: {exc}") from exc
    for f in fields(config):
        setattr(config, f.name, getattr(decoded, f.name))


def _decode(content: bytes, config: ControllerManagerConfig) -> ControllerManagerConfig:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(str(exc)) from None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise _type_error("<root>", data, "object")
    kind = data.get("kind")
    api_version = data.get("apiVersion")
    if not kind:
        raise ConfigError("Object 'Kind' is missing")
    if not api_version:
        raise ConfigError("Object 'apiVersion' is missing")
    if not isinstance(kind, str) or not isinstance(api_version, str):
        raise ConfigError("kind and apiVersion must be strings")
    if api_version != GROUP_VERSION or kind != CONFIG_KIND:
        raise ConfigError(f'no kind "{kind}" is registered for version "{api_version}"')
    target = copy.deepcopy(config)
    _merge(target, data, "")
    return target


def _add_options_from_config_spec(o: ManagerOptions, spec: ControllerManagerConfigurationSpec) -> None:
    _set_leader_election_config(o, spec)

    if o.sync_period is None and spec.sync_period is not None:
        o.sync_period = spec.sync_period
    if not o.cache_namespaces and spec.cache_namespace:
        o.cache_namespaces = [spec.cache_namespace]
    if not o.metrics_bind_address and spec.metrics.bind_address:
        o.metrics_bind_address = spec.metrics.bind_address
    if not o.health_probe_bind_address and spec.health.health_probe_bind_address:
        o.health_probe_bind_address = spec.health.health_probe_bind_address
    if not o.readiness_endpoint_name and spec.health.readiness_endpoint_name:
        o.readiness_endpoint_name = spec.health.readiness_endpoint_name
    if not o.liveness_endpoint_name and spec.health.liveness_endpoint_name:
        o.liveness_endpoint_name = spec.health.liveness_endpoint_name

    controller = spec.controller
    if controller is not None:
        if o.cache_sync_timeout == timedelta(0) and controller.cache_sync_timeout is not None:
            o.cache_sync_timeout = controller.cache_sync_timeout
        if not o.group_kind_concurrency and controller.group_kind_concurrency:
            o.group_kind_concurrency = dict(controller.group_kind_concurrency)


def _set_leader_election_config(o: ManagerOptions, spec: ControllerManagerConfigurationSpec) -> None:
    le = spec.leader_election
    if le is None:
        return
    if not o.leader_election and le.leader_elect is not None:
        o.leader_election = le.leader_elect
    if not o.leader_election_resource_lock and le.resource_lock:
        o.leader_election_resource_lock = le.resource_lock
    if not o.leader_election_namespace and le.resource_namespace:
        o.leader_election_namespace = le.resource_namespace
    if not o.leader_election_id and le.resource_name:
        o.leader_election_id = le.resource_name
    if o.lease_duration is None and le.lease_duration != timedelta(0):
        o.lease_duration = le.lease_duration
    if o.renew_deadline is None and le.renew_deadline != timedelta(0):
        o.renew_deadline = le.renew_deadline
    if o.retry_period is None and le.retry_period != timedelta(0):
        o.retry_period = le.retry_period