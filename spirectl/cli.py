"""Command entry point: configuration parsing and cluster domain detection."""

from __future__ import annotations

import argparse
import logging
import re
import socket
from datetime import timedelta
from typing import Optional, Sequence

from spirectl.config import ConfigError, ControllerManagerConfig, ManagerOptions, load_options_from_file
from spirectl.webhooks import ValidationError, trust_domain_from_string

DEFAULT_SPIRE_SERVER_SOCKET_PATH = "/spire-server/api.sock"
DEFAULT_GC_INTERVAL = timedelta(seconds=10)
K8S_DEFAULT_SERVICE = "kubernetes.default.svc"
DEFAULT_WEBHOOK_NAME = "spire-controller-manager-webhook"
DEFAULT_IGNORE_NAMESPACES = ("kube-system", "kube-public", "spire-system")

_LOG_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "error": logging.ERROR}

setup_log = logging.getLogger("spirectl.setup")


class ClusterDomainError(ValueError):
    """Raised when the cluster domain cannot be determined."""


def parse_cluster_domain_cname(cname: str) -> str:
    """Extract the cluster domain from the CNAME of the default service."""
    cluster_domain = cname.removeprefix(K8S_DEFAULT_SERVICE + ".")
    if cluster_domain == cname:
        raise ClusterDomainError("CNAME did not have expected prefix")
    cluster_domain = cluster_domain.removesuffix(".")
    if not cluster_domain:
        raise ClusterDomainError("CNAME did not have a cluster domain")
    return cluster_domain


def auto_detect_cluster_domain() -> str:
    """Resolve the default service's canonical name and derive the cluster domain."""
    try:
        cname, _, _ = socket.gethostbyname_ex(K8S_DEFAULT_SERVICE)
    except OSError as exc:
        raise ClusterDomainError(f"unable to lookup CNAME: {exc}") from exc
    try:
        return parse_cluster_domain_cname(cname)
    except ClusterDomainError as exc:
        raise ClusterDomainError(f'unable to parse CNAME "{cname}": {exc}') from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spirectl")
    parser.add_argument(
        "-config",
        "--config",
        dest="config",
        default="",
        help=(
            "The controller will load its initial configuration from this file. "
            "Omit this flag to use the default configuration values. "
            "Command-line flags override configuration from this file."
        ),
    )
    parser.add_argument(
        "-spire-api-socket",
        "--spire-api-socket",
        dest="spire_api_socket",
        default="",
        help="The path to the SPIRE API socket (deprecated; use the config file)",
    )
    parser.add_argument(
        "-zap-log-level",
        "--zap-log-level",
        dest="log_level",
        choices=sorted(_LOG_LEVELS),
        default="debug",
        help="Log verbosity.",
    )
    return parser


def parse_config(
    argv: Optional[Sequence[str]] = None,
) -> tuple[ControllerManagerConfig, ManagerOptions, list[re.Pattern[str]]]:
    """Parse flags and the optional config file into a validated configuration."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=_LOG_LEVELS[args.log_level])

    ctrl_config = ControllerManagerConfig(
        ignore_namespaces=list(DEFAULT_IGNORE_NAMESPACES),
        gc_interval=DEFAULT_GC_INTERVAL,
        validating_webhook_configuration_name=DEFAULT_WEBHOOK_NAME,
    )
    options = ManagerOptions()
    ignore_namespaces_regex: list[re.Pattern[str]] = []

    if args.config:
        try:
            load_options_from_file(args.config, options, ctrl_config)
        except ConfigError as exc:
            raise ConfigError(f"unable to load the config file: {exc}") from exc
        for ignored in ctrl_config.ignore_namespaces:
            try:
                ignore_namespaces_regex.append(re.compile(ignored))
            except re.error as exc:
                raise ConfigError(f"unable to compile ignore namespaces regex: {exc}") from exc

    flag_socket = args.spire_api_socket
    if not ctrl_config.spire_server_socket_path:
        if flag_socket:
            ctrl_config.spire_server_socket_path = flag_socket
            setup_log.error(
                "The spire-api-socket flag is deprecated and will be removed in a future release; "
                "use the configuration file instead"
            )
        else:
            ctrl_config.spire_server_socket_path = DEFAULT_SPIRE_SERVER_SOCKET_PATH
    elif flag_socket:
        setup_log.error("Ignoring deprecated spire-api-socket flag which will be removed in a future release")

    if not ctrl_config.cluster_domain:
        try:
            ctrl_config.cluster_domain = auto_detect_cluster_domain()
        except ClusterDomainError as exc:
            setup_log.error("unable to autodetect cluster domain: %s", exc)
            ctrl_config.cluster_domain = ""

    setup_log.info(
        "Config loaded: cluster name=%s cluster domain=%s trust domain=%s "
        "ignore namespaces=%s gc interval=%s spire server socket path=%s",
        ctrl_config.cluster_name,
        ctrl_config.cluster_domain,
        ctrl_config.trust_domain,
        ctrl_config.ignore_namespaces,
        ctrl_config.gc_interval,
        ctrl_config.spire_server_socket_path,
    )

    if not ctrl_config.trust_domain:
        setup_log.error("trust domain is required configuration")
        raise ConfigError("trust domain is required configuration")
    if not ctrl_config.cluster_name:
        raise ConfigError("cluster name is required configuration")
    if not ctrl_config.validating_webhook_configuration_name:
        raise ConfigError("validating webhook configuration name is required configuration")
    if ctrl_config.spec.webhook.cert_dir:
        setup_log.info("certDir configuration is ignored: certDir=%s", ctrl_config.spec.webhook.cert_dir)

    return ctrl_config, options, ignore_namespaces_regex


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Load and validate the configuration; returns the process exit status."""
    try:
        ctrl_config, _options, _ignore = parse_config(argv)
    except ConfigError as exc:
        setup_log.error("error parsing configuration: %s", exc)
        return 1
    try:
        trust_domain_from_string(ctrl_config.trust_domain)
    except ValidationError as exc:
        setup_log.error("invalid trust domain name: %s", exc)
        return 1
    return 0