import logging

from typing_extensions import Protocol

from cache import NamespaceFlags
from conf import AdmissionConf, matches_any

LOG = logging.getLogger(__name__)


class NamespaceReader(Protocol):
    def lookup(self, namespace: str) -> NamespaceFlags | None: ...


def _filter(include, exclude, namespace: str) -> bool:
    eligible = not include or matches_any(include, namespace)
    return eligible and not matches_any(exclude, namespace)


class NamespaceFilter:
    """Decide whether a namespace is handled by the scheduler and whether its
    pods get application id labels.

    A per-namespace annotation override (TRUE or FALSE) always wins over the
    configured regular expressions.
    """

    def __init__(self, conf: AdmissionConf, ns_cache: NamespaceReader | None = None):
        self._conf = conf
        self._ns_cache = ns_cache

    def _flags(self, namespace: str) -> NamespaceFlags | None:
        if self._ns_cache is None:
            return None
        return self._ns_cache.lookup(namespace)

    def should_process(self, namespace: str) -> bool:
        flags = self._flags(namespace)
        override = flags.enable_yunikorn.as_bool() if flags is not None else None
        if override is not None:
            LOG.debug("namespace %s enableYuniKorn override: %s", namespace, override)
            return override
        return _filter(
            self._conf.process_namespaces, self._conf.bypass_namespaces, namespace
        )

    def should_label(self, namespace: str) -> bool:
        flags = self._flags(namespace)
        override = flags.generate_app_id.as_bool() if flags is not None else None
        if override is not None:
            LOG.debug("namespace %s generateAppId override: %s", namespace, override)
            return override
        return _filter(
            self._conf.label_namespaces, self._conf.no_label_namespaces, namespace
        )
