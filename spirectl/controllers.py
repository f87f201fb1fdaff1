"""Controllers that turn resource change events into reconciliation triggers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, ClassVar, Optional, Protocol

from spirectl.k8sapi import Pod
from spirectl.namespace import is_ignored
from spirectl.types import ClusterFederatedTrustDomain, ClusterSPIFFEID, ClusterStaticEntry

log = logging.getLogger(__name__)


class _Triggerer(Protocol):
    def trigger(self) -> None: ...


@dataclass(frozen=True)
class Request:
    """Identifies the object whose change caused a reconcile."""

    name: str = ""
    namespace: str = ""


@dataclass(frozen=True)
class Result:
    """Outcome of a reconcile; the defaults mean no requeue."""

    requeue: bool = False
    requeue_after: timedelta = timedelta(0)


@dataclass
class _TriggeringReconciler:
    triggerer: _Triggerer
    client: Optional[Any] = None

    resource: ClassVar[type]

    def _trigger(self, request: Request) -> Result:
        log.debug("Triggering reconciliation", extra={"request": request})
        self.triggerer.trigger()
        return Result()


@dataclass
class ClusterFederatedTrustDomainReconciler(_TriggeringReconciler):
    """Reacts to ClusterFederatedTrustDomain changes."""

    resource: ClassVar[type] = ClusterFederatedTrustDomain

    def reconcile(self, request: Request) -> Result:
        """Trigger a reconciliation of the federation relationships."""
        return self._trigger(request)


@dataclass
class ClusterSPIFFEIDReconciler(_TriggeringReconciler):
    """Reacts to ClusterSPIFFEID changes."""

    resource: ClassVar[type] = ClusterSPIFFEID

    def reconcile(self, request: Request) -> Result:
        """Trigger a reconciliation of the entries."""
        return self._trigger(request)


@dataclass
class ClusterStaticEntryReconciler(_TriggeringReconciler):
    """Reacts to ClusterStaticEntry changes."""

    resource: ClassVar[type] = ClusterStaticEntry

    def reconcile(self, request: Request) -> Result:
        """Trigger a reconciliation of the entries."""
        return self._trigger(request)


@dataclass
class PodReconciler(_TriggeringReconciler):
    """Reacts to Pod changes outside the ignored namespaces."""

    ignore_namespaces: list[re.Pattern[str] | str] = field(default_factory=list)

    resource: ClassVar[type] = Pod

    def reconcile(self, request: Request) -> Result:
        """Trigger a reconciliation unless the pod's namespace is ignored."""
        if is_ignored(self.ignore_namespaces, request.namespace):
            return Result()
        return self._trigger(request)