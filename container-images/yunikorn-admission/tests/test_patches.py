from cache import PriorityClassCache
from constants import (
    CANONICAL_LABEL_APPLICATION_ID,
    CANONICAL_LABEL_QUEUE_NAME,
    LABEL_APPLICATION_ID,
    LABEL_QUEUE_NAME,
)
from models import Metadata, Pod, PodSpec
import patches


def labels_of(patch):
    assert len(patch) == 1
    assert patch[0].op == "add"
    assert patch[0].path == "/metadata/labels"
    return patch[0].value


def test_update_scheduler_name():
    patch = patches.update_scheduler_name([])
    assert len(patch) == 1
    assert patch[0].op == "add"
    assert patch[0].path == "/spec/schedulerName"
    assert patch[0].value == "yunikorn"


def test_update_labels_generates_app_id():
    pod = Pod(metadata=Metadata(name="a-test-pod", labels={"random": "random"}))
    labels = labels_of(patches.update_labels("default", pod, []))

    assert len(labels) == 3
    assert labels["random"] == "random"
    assert labels[CANONICAL_LABEL_APPLICATION_ID] == "yunikorn-default-autogen"
    assert labels[LABEL_APPLICATION_ID] == "yunikorn-default-autogen"


def test_update_labels_keeps_canonical_app_id():
    pod = Pod(
        metadata=Metadata(
            labels={"random": "random", CANONICAL_LABEL_APPLICATION_ID: "app-0001"}
        )
    )
    labels = labels_of(patches.update_labels("default", pod, []))

    assert len(labels) == 3
    assert labels[CANONICAL_LABEL_APPLICATION_ID] == "app-0001"
    assert labels[LABEL_APPLICATION_ID] == "app-0001"


def test_update_labels_keeps_legacy_app_id():
    pod = Pod(metadata=Metadata(labels={LABEL_APPLICATION_ID: "test-app"}))
    labels = labels_of(patches.update_labels("test-ns", pod, []))

    assert labels == {
        CANONICAL_LABEL_APPLICATION_ID: "test-app",
        LABEL_APPLICATION_ID: "test-app",
    }


def test_update_labels_copies_queue():
    pod = Pod(
        metadata=Metadata(
            labels={"random": "random", CANONICAL_LABEL_QUEUE_NAME: "root.abc"}
        )
    )
    labels = labels_of(patches.update_labels("default", pod, []))

    assert len(labels) == 5
    assert labels[CANONICAL_LABEL_QUEUE_NAME] == "root.abc"
    assert labels[LABEL_QUEUE_NAME] == "root.abc"
    assert labels[LABEL_APPLICATION_ID].startswith("yunikorn")


def test_update_labels_legacy_queue_not_copied_back():
    pod = Pod(metadata=Metadata(labels={LABEL_QUEUE_NAME: "root.legacy"}))
    labels = labels_of(patches.update_labels("default", pod, []))

    assert CANONICAL_LABEL_QUEUE_NAME not in labels
    assert labels[LABEL_QUEUE_NAME] == "root.legacy"


def test_update_labels_empty_namespace():
    pod = Pod(metadata=Metadata(generateName="some-pod-"))
    labels = labels_of(patches.update_labels("", pod, []))

    assert len(labels) == 2
    assert labels[LABEL_APPLICATION_ID] == "yunikorn-default-autogen"


def test_update_labels_empty_pod():
    labels = labels_of(patches.update_labels("default", Pod(), []))
    assert len(labels) == 2


def test_update_labels_does_not_touch_pod():
    pod = Pod(metadata=Metadata(labels={"random": "random"}))
    patches.update_labels("default", pod, [])
    assert pod.metadata.labels == {"random": "random"}


def test_add_operation_merges_same_path():
    patch = patches.update_annotations("/metadata/annotations", {"a": "1"}, [])
    patch = patches.update_annotations("/metadata/annotations", {"b": "2"}, patch)

    assert len(patch) == 1
    assert patch[0].value == {"a": "1", "b": "2"}


def test_update_preemption_info():
    pc_cache = PriorityClassCache()
    pc_cache.set("no-preempt", False)
    pc_cache.set("preempt", True)

    pod = Pod(
        metadata=Metadata(annotations={"keep": "me"}),
        spec=PodSpec(priorityClassName="no-preempt"),
    )
    patch = patches.update_preemption_info(pod, pc_cache, [])
    assert len(patch) == 1
    assert patch[0].path == "/metadata/annotations"
    assert patch[0].value == {
        "keep": "me",
        "yunikorn.apache.org/allow-preemption": "false",
    }

    for name in ("preempt", "unknown", None):
        pod = Pod(spec=PodSpec(priorityClassName=name))
        assert patches.update_preemption_info(pod, pc_cache, []) == []


def test_generate_app_id():
    assert patches.generate_app_id("ns") == "yunikorn-ns-autogen"
    assert patches.generate_app_id(None) == "yunikorn-default-autogen"
