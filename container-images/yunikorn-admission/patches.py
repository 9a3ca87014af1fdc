import logging

from constants import (
    ANNOTATION_ALLOW_PREEMPTION,
    AUTOGEN_APP_PREFIX,
    CANONICAL_LABEL_APPLICATION_ID,
    CANONICAL_LABEL_QUEUE_NAME,
    DEFAULT_NAMESPACE,
    LABEL_APPLICATION_ID,
    LABEL_QUEUE_NAME,
    SCHEDULER_NAME,
)
from models import PatchAction, PatchOp, Pod

LOG = logging.getLogger(__name__)

SCHEDULER_NAME_PATH = "/spec/schedulerName"
LABELS_PATH = "/metadata/labels"
ANNOTATIONS_PATH = "/metadata/annotations"


def add_operation(patch: list[PatchAction], path: str, value) -> list[PatchAction]:
    """Append an add operation, merging map values into an existing operation
    on the same path so that each path is written once."""
    for action in patch:
        if action.path == path:
            if isinstance(action.value, dict) and isinstance(value, dict):
                action.value = {**action.value, **value}
            else:
                action.value = value
            return patch

    patch.append(PatchAction(op=PatchOp.ADD, path=path, value=value))
    return patch


def update_scheduler_name(patch: list[PatchAction]) -> list[PatchAction]:
    LOG.info("updating scheduler name to %s", SCHEDULER_NAME)
    return add_operation(patch, SCHEDULER_NAME_PATH, SCHEDULER_NAME)


def generate_app_id(namespace: str | None) -> str:
    return f"{AUTOGEN_APP_PREFIX}-{namespace or DEFAULT_NAMESPACE}-autogen"


def update_labels(
    namespace: str | None, pod: Pod, patch: list[PatchAction]
) -> list[PatchAction]:
    labels = dict(pod.metadata.labels)

    if CANONICAL_LABEL_APPLICATION_ID in labels:
        app_id = labels[CANONICAL_LABEL_APPLICATION_ID]
    elif LABEL_APPLICATION_ID in labels:
        app_id = labels[LABEL_APPLICATION_ID]
    else:
        app_id = generate_app_id(namespace)
        LOG.info("generated application id %s", app_id)

    # Keep both generations of the label keys in sync.
    labels[CANONICAL_LABEL_APPLICATION_ID] = app_id
    labels[LABEL_APPLICATION_ID] = app_id

    if CANONICAL_LABEL_QUEUE_NAME in labels:
        labels[LABEL_QUEUE_NAME] = labels[CANONICAL_LABEL_QUEUE_NAME]

    return add_operation(patch, LABELS_PATH, labels)


def update_annotations(
    path: str, annotations: dict[str, str], patch: list[PatchAction]
) -> list[PatchAction]:
    return add_operation(patch, path, dict(annotations))


def update_preemption_info(pod: Pod, pc_cache, patch: list[PatchAction]):
    if pc_cache is None:
        return patch

    priority_class = pod.spec.priorityClassName
    if pc_cache.is_preempt_self_allowed(priority_class):
        return patch

    LOG.info("priority class %s does not allow preemption", priority_class)
    annotations = dict(pod.metadata.annotations)
    annotations[ANNOTATION_ALLOW_PREEMPTION] = "false"
    return update_annotations(ANNOTATIONS_PATH, annotations, patch)
