import pytest

import mutate
from admission import AdmissionController
from cache import NamespaceCache, PriorityClassCache
from conf import (
    AdmissionConf,
    ACCESS_CONTROL_BYPASS_AUTH,
    ACCESS_CONTROL_EXTERNAL_GROUPS,
    ACCESS_CONTROL_EXTERNAL_USERS,
    ACCESS_CONTROL_SYSTEM_USERS,
    ACCESS_CONTROL_TRUST_CONTROLLERS,
    FILTERING_BYPASS_NAMESPACES,
    FILTERING_LABEL_NAMESPACES,
    FILTERING_NO_LABEL_NAMESPACES,
    FILTERING_PROCESS_NAMESPACES,
    WEBHOOK_SCHEDULER_SERVICE_ADDRESS,
)


NAMESPACES = [
    {
        "metadata": {
            "name": "ns-enabled",
            "annotations": {"yunikorn.apache.org/namespace.enableYuniKorn": "true"},
        }
    },
    {
        "metadata": {
            "name": "kube-system",
            "annotations": None,
        }
    },
]

PRIORITY_CLASSES = [
    {
        "metadata": {
            "name": "no-preempt",
            "annotations": {"yunikorn.apache.org/allow-preemption": "false"},
        }
    },
]


class FakeProvider:
    def namespaces(self):
        return NAMESPACES

    def priority_classes(self):
        return PRIORITY_CLASSES

    def watch(self, kind):
        return iter(())


def admission_conf(
    url="yunikorn-service:9080",
    process_ns="",
    bypass_ns="",
    label_ns="",
    no_label_ns="",
    bypass_auth=False,
    trust_controllers=True,
):
    if bypass_ns == "":
        bypass_ns = "^kube-system$"
    return {
        WEBHOOK_SCHEDULER_SERVICE_ADDRESS: url,
        FILTERING_PROCESS_NAMESPACES: process_ns,
        FILTERING_BYPASS_NAMESPACES: bypass_ns,
        FILTERING_LABEL_NAMESPACES: label_ns,
        FILTERING_NO_LABEL_NAMESPACES: no_label_ns,
        ACCESS_CONTROL_BYPASS_AUTH: str(bypass_auth).lower(),
        ACCESS_CONTROL_TRUST_CONTROLLERS: str(trust_controllers).lower(),
        ACCESS_CONTROL_SYSTEM_USERS: (
            "^system:serviceaccount:kube-system:job-controller$,"
            "^system:serviceaccount:kube-system:deployment-controller$"
        ),
        ACCESS_CONTROL_EXTERNAL_USERS: "^testExtUser$",
        ACCESS_CONTROL_EXTERNAL_GROUPS: "^testExtGroup$",
    }


def prepare_controller(**kwargs) -> AdmissionController:
    conf = AdmissionConf.from_mapping(admission_conf(**kwargs))
    return AdmissionController(conf, PriorityClassCache(), NamespaceCache())


@pytest.fixture()
def controller():
    return prepare_controller(bypass_ns="^kube-system$,^bypass$", no_label_ns="^nolabel$")


@pytest.fixture()
def app():
    app = mutate.create_app(
        PROVIDER=FakeProvider,
        TESTING=True,
        ADMISSION_CONF=admission_conf(
            bypass_ns="^kube-system$,^bypass$", no_label_ns="^nolabel$"
        ),
    )
    yield app
    app.watcher.stop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_controller():
    return prepare_controller
