import logging
import threading

from kubernetes import config, client
from openshift.dynamic import DynamicClient
from typing import Any, Iterator
from typing_extensions import Protocol

from cache import NamespaceCache, NamespaceFlags, PriorityClassCache, TriState
from constants import (
    ANNOTATION_ALLOW_PREEMPTION,
    ANNOTATION_ENABLE_YUNIKORN,
    ANNOTATION_GENERATE_APP_ID,
)
from exc import ProviderError

LOG = logging.getLogger(__name__)

WATCH_RETRY_DELAY = 5


class Provider(Protocol):
    def namespaces(self) -> list[dict[str, Any]]: ...

    def priority_classes(self) -> list[dict[str, Any]]: ...

    def watch(self, kind: str) -> Iterator[dict[str, Any]]: ...


class KubernetesProvider(Provider):
    def __init__(self):
        """Allocate a Kubernetes dynamic client and the resource clients we
        watch"""

        super().__init__()

        try:
            config.load_config()
        except config.ConfigException as err:
            LOG.warning("unable to configure Kubernetes client: %s", err)
            raise ProviderError("unable to configure Kubernetes client")

        k8s_client = client.ApiClient()
        dyn_client = DynamicClient(k8s_client)

        self._client = dyn_client
        self._resources = {
            "Namespace": dyn_client.resources.get(api_version="v1", kind="Namespace"),
            "PriorityClass": dyn_client.resources.get(
                api_version="scheduling.k8s.io/v1", kind="PriorityClass"
            ),
        }

    def _list(self, kind):
        return self._resources[kind].get().to_dict().get("items", [])

    def namespaces(self):
        return self._list("Namespace")

    def priority_classes(self):
        return self._list("PriorityClass")

    def watch(self, kind):
        for event in self._client.watch(self._resources[kind]):
            yield {"type": event["type"], "object": event["raw_object"]}


def namespace_flags(namespace: dict[str, Any]) -> NamespaceFlags:
    annotations = namespace.get("metadata", {}).get("annotations") or {}
    return NamespaceFlags(
        enable_yunikorn=TriState.from_annotation(
            annotations.get(ANNOTATION_ENABLE_YUNIKORN)
        ),
        generate_app_id=TriState.from_annotation(
            annotations.get(ANNOTATION_GENERATE_APP_ID)
        ),
    )


def allow_preemption(priority_class: dict[str, Any]) -> bool:
    annotations = priority_class.get("metadata", {}).get("annotations") or {}
    return TriState.from_annotation(
        annotations.get(ANNOTATION_ALLOW_PREEMPTION)
    ) is not TriState.FALSE


class CacheWatcher:
    """Keeps the namespace and priority class caches in sync with the
    cluster."""

    def __init__(
        self,
        provider: Provider,
        ns_cache: NamespaceCache,
        pc_cache: PriorityClassCache,
    ):
        self.provider = provider
        self.ns_cache = ns_cache
        self.pc_cache = pc_cache
        self._threads = []
        self._stopped = threading.Event()

    def update_namespace(self, event_type: str, namespace: dict[str, Any]):
        name = namespace["metadata"]["name"]
        if event_type == "DELETED":
            self.ns_cache.delete(name)
        else:
            self.ns_cache.set(name, namespace_flags(namespace))

    def update_priority_class(self, event_type: str, priority_class: dict[str, Any]):
        name = priority_class["metadata"]["name"]
        if event_type == "DELETED":
            self.pc_cache.delete(name)
        else:
            self.pc_cache.set(name, allow_preemption(priority_class))

    def sync(self):
        for namespace in self.provider.namespaces():
            self.update_namespace("ADDED", namespace)
        for priority_class in self.provider.priority_classes():
            self.update_priority_class("ADDED", priority_class)
        LOG.info(
            "cached %d namespaces and %d priority classes",
            len(self.ns_cache),
            len(self.pc_cache),
        )

    def _run(self, kind, handler):
        while not self._stopped.is_set():
            try:
                for event in self.provider.watch(kind):
                    handler(event["type"], event["object"])
            except Exception as err:
                LOG.error("watch for %s failed, restarting: %s", kind, err)
            self._stopped.wait(WATCH_RETRY_DELAY)

    def start(self):
        self.sync()
        for kind, handler in (
            ("Namespace", self.update_namespace),
            ("PriorityClass", self.update_priority_class),
        ):
            thread = threading.Thread(
                target=self._run, args=(kind, handler), daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def stop(self):
        self._stopped.set()
        for thread in self._threads:
            thread.join(WATCH_RETRY_DELAY)
        self._threads = []
