import logging

import pydantic
import requests

from access import AccessControl
from cache import NamespaceCache, PriorityClassCache
from conf import AdmissionConf
from constants import (
    ANNOTATION_USER_INFO,
    CONFIG_MAP_NAMES,
    CONFIG_MAP_QUEUES_KEY,
    DEFAULT_NAMESPACE,
    LABEL_APP,
    LABEL_APP_VALUE,
    VALIDATE_CONF_PATH,
)
from exc import DecodeError
from filters import NamespaceFilter
from models import (
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReviewStatus,
    ConfigMap,
    CronJob,
    Operation,
    Patch,
    PatchAction,
    PatchType,
    Pod,
    Workload,
)
from patches import (
    ANNOTATIONS_PATH,
    update_annotations,
    update_labels,
    update_preemption_info,
    update_scheduler_name,
)

LOG = logging.getLogger(__name__)

VALIDATION_TIMEOUT = 5
REJECTED_REASON = "configuration rejected by the scheduler"

TEMPLATE_ANNOTATIONS_PATH = "/spec/template/metadata/annotations"

# Workload kinds carrying a pod template, and where the template annotations
# live inside each of them.
WORKLOAD_KINDS = {
    "Deployment": (Workload, TEMPLATE_ANNOTATIONS_PATH),
    "DaemonSet": (Workload, TEMPLATE_ANNOTATIONS_PATH),
    "StatefulSet": (Workload, TEMPLATE_ANNOTATIONS_PATH),
    "ReplicaSet": (Workload, TEMPLATE_ANNOTATIONS_PATH),
    "Job": (Workload, TEMPLATE_ANNOTATIONS_PATH),
    "CronJob": (CronJob, "/spec/jobTemplate/spec/template/metadata/annotations"),
}


def admission_response(
    uid: str,
    allowed: bool,
    message: str | None = None,
    patch: list[PatchAction] | None = None,
) -> AdmissionResponse:
    return AdmissionResponse(
        uid=uid,
        allowed=allowed,
        status=AdmissionReviewStatus(message=message) if message else None,
        patchType=PatchType.JSONPatch if patch else None,
        patch=Patch(patch) if patch else None,
    )


def decode_object(model, raw, kind: str):
    if raw is None:
        raise DecodeError(f"failed to decode {kind}: no object in request")
    try:
        return model.model_validate(raw)
    except pydantic.ValidationError as err:
        raise DecodeError(f"failed to decode {kind}: {err}")


class AdmissionController:
    def __init__(
        self,
        conf: AdmissionConf,
        pc_cache: PriorityClassCache | None = None,
        ns_cache: NamespaceCache | None = None,
    ):
        self.conf = conf
        self.pc_cache = pc_cache
        self.ns_cache = ns_cache
        self.namespace_filter = NamespaceFilter(conf, ns_cache)
        self.access_control = AccessControl(conf)

    def should_process_namespace(self, namespace: str) -> bool:
        return self.namespace_filter.should_process(namespace)

    def should_label_namespace(self, namespace: str) -> bool:
        return self.namespace_filter.should_label(namespace)

    def mutate(self, req: AdmissionRequest | None) -> AdmissionResponse:
        if req is None:
            LOG.warning("empty request received")
            return admission_response("", False)

        kind = req.kind.kind
        LOG.info(
            "admission review: kind=%s namespace=%s uid=%s operation=%s user=%s",
            kind,
            req.namespace,
            req.uid,
            req.operation,
            req.userInfo.username,
        )

        try:
            if kind == "Pod":
                if req.operation == Operation.UPDATE:
                    return self._process_pod_update(req)
                return self._process_pod(req)
            if kind in WORKLOAD_KINDS:
                return self._process_workload(req)
        except DecodeError as err:
            LOG.error("%s", err)
            return admission_response(req.uid, False, str(err))
        except Exception as err:
            LOG.exception("failed to process %s %s", kind, req.uid)
            return admission_response(req.uid, False, f"internal error: {err}")

        LOG.debug("object kind %s not handled", kind)
        return admission_response(req.uid, True)

    def _process_pod(self, req: AdmissionRequest) -> AdmissionResponse:
        pod = decode_object(Pod, req.object, "Pod")
        namespace = req.namespace or DEFAULT_NAMESPACE

        if pod.metadata.labels.get(LABEL_APP) == LABEL_APP_VALUE:
            LOG.info("ignoring yunikorn pod %s", pod.metadata.name)
            return admission_response(req.uid, True)

        if not self.should_process_namespace(namespace):
            LOG.info("bypassing namespace %s", namespace)
            return admission_response(req.uid, True)

        decision = self.access_control.check_annotation(
            req.userInfo, pod.metadata.annotations
        )
        if not decision.allowed:
            return admission_response(req.uid, False, decision.message)

        patch: list[PatchAction] = []
        patch = update_scheduler_name(patch)

        if self.should_label_namespace(namespace):
            patch = update_labels(namespace, pod, patch)
            patch = update_preemption_info(pod, self.pc_cache, patch)
            if decision.annotation is not None:
                patch = self._update_user_info(
                    ANNOTATIONS_PATH, pod.metadata.annotations, decision.annotation, patch
                )
        else:
            LOG.info("skipping labels for namespace %s", namespace)

        return admission_response(req.uid, True, patch=patch)

    def _process_pod_update(self, req: AdmissionRequest) -> AdmissionResponse:
        pod = decode_object(Pod, req.object, "Pod")
        namespace = req.namespace or DEFAULT_NAMESPACE

        if pod.metadata.labels.get(LABEL_APP) == LABEL_APP_VALUE:
            return admission_response(req.uid, True)

        if not self.should_process_namespace(namespace):
            return admission_response(req.uid, True)

        if ANNOTATION_USER_INFO not in pod.metadata.annotations:
            LOG.info(
                "unauthorized pod mutation of %s by %s",
                pod.metadata.name,
                req.userInfo.username,
            )
            return admission_response(req.uid, False, "unauthorized pod mutation")

        old_pod = decode_object(Pod, req.oldObject, "Pod")

        decision = self.access_control.check_annotation(
            req.userInfo, pod.metadata.annotations, old_pod.metadata.annotations
        )
        if not decision.allowed:
            return admission_response(req.uid, False, decision.message)

        # The scheduler name of an existing pod cannot change, so updates are
        # never patched.
        return admission_response(req.uid, True)

    def _process_workload(self, req: AdmissionRequest) -> AdmissionResponse:
        kind = req.kind.kind
        model, annotations_path = WORKLOAD_KINDS[kind]
        workload = decode_object(model, req.object, kind)
        namespace = req.namespace or DEFAULT_NAMESPACE

        if LABEL_APP_VALUE in (
            workload.metadata.labels.get(LABEL_APP),
            workload.template_metadata.labels.get(LABEL_APP),
        ):
            LOG.info("ignoring yunikorn %s %s", kind, workload.metadata.name)
            return admission_response(req.uid, True)

        if not self.should_process_namespace(namespace):
            LOG.info("bypassing namespace %s", namespace)
            return admission_response(req.uid, True)

        annotations = workload.template_metadata.annotations
        old_annotations = None
        if req.operation == Operation.UPDATE and req.oldObject is not None:
            old_annotations = decode_object(
                model, req.oldObject, kind
            ).template_metadata.annotations

        decision = self.access_control.check_annotation(
            req.userInfo, annotations, old_annotations, generate=True
        )
        if not decision.allowed:
            return admission_response(req.uid, False, decision.message)

        patch: list[PatchAction] = []
        if decision.annotation is not None and self.should_label_namespace(namespace):
            patch = self._update_user_info(
                annotations_path, annotations, decision.annotation, patch
            )

        return admission_response(req.uid, True, patch=patch)

    def _update_user_info(self, path, annotations, value, patch):
        LOG.info("setting user info annotation to %s", value)
        return update_annotations(
            path, {**annotations, ANNOTATION_USER_INFO: value}, patch
        )

    def validate_conf(self, req: AdmissionRequest | None) -> AdmissionResponse:
        if req is None:
            LOG.warning("empty request received")
            return admission_response("", False)

        if req.kind.kind != "ConfigMap" or req.operation == Operation.DELETE:
            return admission_response(req.uid, True)

        try:
            config_map = decode_object(ConfigMap, req.object, "ConfigMap")
        except DecodeError as err:
            LOG.error("%s", err)
            return admission_response(req.uid, False, str(err))

        if config_map.metadata.name not in CONFIG_MAP_NAMES:
            return admission_response(req.uid, True)

        reason = self.validate_config_map(req.namespace, config_map)
        if reason is not None:
            return admission_response(req.uid, False, reason)
        return admission_response(req.uid, True)

    def validate_config_map(self, namespace: str | None, config_map: ConfigMap):
        """Ask the scheduler whether a configuration change is valid.

        Returns None when the change is allowed, or the reason it was
        rejected. The check fails open: if the scheduler cannot be reached or
        answers with anything unexpected, the change is allowed.
        """
        data = (config_map.data or {}).get(CONFIG_MAP_QUEUES_KEY)
        if not data:
            LOG.info("no %s in config map, skipping validation", CONFIG_MAP_QUEUES_KEY)
            return None

        url = f"http://{self.conf.scheduler_service_address}{VALIDATE_CONF_PATH}"
        LOG.info("validating config map %s/%s", namespace, config_map.metadata.name)
        try:
            res = requests.post(
                url,
                data=data.encode(),
                headers={"content-type": "application/json"},
                timeout=VALIDATION_TIMEOUT,
            )
            if not 200 <= res.status_code < 300:
                LOG.warning(
                    "config validation returned status %s, allowing change",
                    res.status_code,
                )
                return None
            body = res.json()
        except (requests.RequestException, ValueError) as err:
            LOG.warning("config validation failed, allowing change: %s", err)
            return None

        if not isinstance(body, dict) or not isinstance(body.get("allowed"), bool):
            LOG.warning("unexpected validation response, allowing change: %s", body)
            return None

        if body["allowed"]:
            LOG.info("config validation passed")
            return None

        reason = str(body.get("reason") or REJECTED_REASON)
        LOG.info("config validation failed: %s", reason)
        return reason
