"""Validation of ClusterSPIFFEID resources and the parsing it relies on."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional

from spirectl.types import ClusterSPIFFEID, ClusterSPIFFEIDSpec, LabelSelector

DNS_NAME_TEMPLATE_NAME = "dnsNameTemplate"
SPIFFE_ID_TEMPLATE_NAME = "spiffeIDTemplate"
WORKLOAD_SELECTOR_TEMPLATE_NAME = "workloadSelectorTemplate"


class ValidationError(ValueError):
    """Raised when a resource spec is invalid."""


# --- trust domains ----------------------------------------------------------

_TD_CHARS = re.compile(r"[a-z0-9._-]+")


@dataclass(frozen=True)
class TrustDomain:
    """A validated SPIFFE trust domain name."""

    name: str

    def id_string(self) -> str:
        return f"spiffe://{self.name}"

    def __str__(self) -> str:
        return self.name


def trust_domain_from_string(value: str) -> TrustDomain:
    """Parse a trust domain name, or the trust domain of a SPIFFE ID."""
    if ":/" in value:
        if not value.startswith("spiffe://"):
            raise ValidationError("scheme is missing or invalid")
        rest = value[len("spiffe://"):]
        name, _, _ = rest.partition("/")
    else:
        name = value
    if not name:
        raise ValidationError("trust domain is missing")
    if not _TD_CHARS.fullmatch(name):
        raise ValidationError(
            "trust domain characters are limited to lowercase letters, numbers, dots, dashes, and underscores"
        )
    return TrustDomain(name)


# --- label selectors --------------------------------------------------------

_OPERATORS = {"In", "NotIn", "Exists", "DoesNotExist"}


@dataclass(frozen=True)
class _Requirement:
    key: str
    operator: str
    values: frozenset[str]

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator == "In":
            return self.key in labels and labels[self.key] in self.values
        if self.operator == "NotIn":
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator == "Exists":
            return self.key in labels
        return self.key not in labels


@dataclass(frozen=True)
class Selector:
    """A compiled label selector; with no requirements it matches everything."""

    requirements: tuple[_Requirement, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        return all(req.matches(labels) for req in self.requirements)


def label_selector_as_selector(selector: LabelSelector) -> Selector:
    """Compile a LabelSelector, validating its expressions."""
    reqs = [_Requirement(k, "In", frozenset([v])) for k, v in sorted(selector.match_labels.items())]
    for expr in selector.match_expressions:
        if expr.operator not in _OPERATORS:
            raise ValidationError(f'"{expr.operator}" is not a valid label selector operator')
        if not expr.key:
            raise ValidationError("key: Invalid value: \"\": name part must be non-empty")
        if expr.operator in ("In", "NotIn") and not expr.values:
            raise ValidationError("values: Invalid value: for 'in', 'notin' operators, values set can't be empty")
        if expr.operator in ("Exists", "DoesNotExist") and expr.values:
            raise ValidationError("values: Invalid value: values set must be empty for exists and does not exist")
        reqs.append(_Requirement(expr.key, expr.operator, frozenset(expr.values)))
    return Selector(tuple(reqs))


# --- templates --------------------------------------------------------------

_ACTION = re.compile(r"\{\{(-\s)?(.*?)(\s-)?\}\}", re.DOTALL)
_FIELD_PATH = re.compile(r"\.|(?:\.[A-Za-z_][A-Za-z0-9_]*)+")
_STRING_LIT = re.compile(r'"(?:[^"\\]|\\.)*"')


@dataclass(frozen=True)
class Template:
    """A parsed template of literal text and field references like ``{{ .PodMeta.Name }}``."""

    name: str
    parts: tuple[tuple[str, str], ...]

    def render(self, data: Any) -> str:
        out = []
        for kind, value in self.parts:
            if kind == "text":
                out.append(value)
            elif kind == "string":
                out.append(value)
            else:
                out.append(str(self._lookup(data, value)))
        return "".join(out)

    def _lookup(self, data: Any, path: str) -> Any:
        if path == ".":
            return data
        current = data
        for name in path[1:].split("."):
            if isinstance(current, Mapping):
                if name not in current:
                    return "<no value>"
                current = current[name]
            elif hasattr(current, name):
                current = getattr(current, name)
            else:
                raise ValidationError(
                    f"template: {self.name}: can't evaluate field {name} in {type(current).__name__}"
                )
        return current


def parse_template(name: str, text: str) -> Template:
    """Parse template text; raises ValidationError on malformed actions."""
    parts: list[tuple[str, str]] = []
    pos = 0
    for match in _ACTION.finditer(text):
        literal = text[pos:match.start()]
        if match.group(1):
            literal = literal.rstrip()
        if "{{" in literal:
            raise ValidationError(f"template: {name}: unclosed action")
        if literal:
            parts.append(("text", literal))
        body = match.group(2).strip()
        if body.startswith("/*"):
            if not body.endswith("*/"):
                raise ValidationError(f"template: {name}: unclosed comment")
        elif not body:
            raise ValidationError(f"template: {name}: missing value for command")
        elif _STRING_LIT.fullmatch(body):
            parts.append(("string", bytes(body[1:-1], "utf-8").decode("unicode_escape")))
        elif _FIELD_PATH.fullmatch(body):
            parts.append(("field", body))
        else:
            raise ValidationError(f"template: {name}: unsupported action {body!r}")
        pos = match.end()
        if match.group(3):
            rest = text[pos:]
            pos += len(rest) - len(rest.lstrip())
    tail = text[pos:]
    if "{{" in tail:
        raise ValidationError(f"template: {name}: unclosed action")
    if tail:
        parts.append(("text", tail))
    return Template(name, tuple(parts))


# --- spec parsing -----------------------------------------------------------


@dataclass
class ParsedClusterSPIFFEIDSpec:
    """A parsed and validated ClusterSPIFFEIDSpec."""

    spiffe_id_template: Template
    namespace_selector: Optional[Selector] = None
    pod_selector: Optional[Selector] = None
    ttl: timedelta = timedelta(0)
    federates_with: list[TrustDomain] = field(default_factory=list)
    dns_name_templates: list[Template] = field(default_factory=list)
    workload_selector_templates: list[Template] = field(default_factory=list)
    admin: bool = False
    downstream: bool = False


def _parse(name: str, text: str, what: str) -> Template:
    try:
        return parse_template(name, text)
    except ValidationError as exc:
        raise ValidationError(f"invalid {what}: {exc}") from exc


def parse_cluster_spiffeid_spec(spec: ClusterSPIFFEIDSpec) -> ParsedClusterSPIFFEIDSpec:
    """Parse and validate every field of the spec."""
    if not spec.spiffe_id_template:
        raise ValidationError("empty SPIFFEID template")
    spiffe_id_template = _parse(SPIFFE_ID_TEMPLATE_NAME, spec.spiffe_id_template, "SPIFFEID template")

    namespace_selector = (
        label_selector_as_selector(spec.namespace_selector) if spec.namespace_selector is not None else None
    )
    pod_selector = label_selector_as_selector(spec.pod_selector) if spec.pod_selector is not None else None

    federates_with = []
    for value in spec.federates_with:
        try:
            federates_with.append(trust_domain_from_string(value))
        except ValidationError as exc:
            raise ValidationError(f"invalid federatesWith value: {exc}") from exc

    dns = [_parse(DNS_NAME_TEMPLATE_NAME, v, "dnsNameTemplate value") for v in spec.dns_name_templates]
    workload = [
        _parse(WORKLOAD_SELECTOR_TEMPLATE_NAME, v, "workloadSelectorTemplates value")
        for v in spec.workload_selector_templates
    ]

    return ParsedClusterSPIFFEIDSpec(
        spiffe_id_template=spiffe_id_template,
        namespace_selector=namespace_selector,
        pod_selector=pod_selector,
        ttl=spec.ttl,
        federates_with=federates_with,
        dns_name_templates=dns,
        workload_selector_templates=workload,
        admin=spec.admin,
        downstream=spec.downstream,
    )


def validate_cluster_spiffeid(resource: ClusterSPIFFEID) -> list[str]:
    """Validate a ClusterSPIFFEID for create or update; returns warnings."""
    parse_cluster_spiffeid_spec(resource.spec)
    return []