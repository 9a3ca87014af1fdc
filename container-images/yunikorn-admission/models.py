import base64
from typing import Any, Literal
from pydantic import (
    BaseModel,
    RootModel,
    model_validator,
    field_validator,
)
from enum import StrEnum


class ApiVersion(StrEnum):
    V1 = "admission.k8s.io/v1"


class Operation(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class PatchType(StrEnum):
    JSONPatch = "JSONPatch"


class PatchOp(StrEnum):
    ADD = "add"


class PatchAction(BaseModel):
    op: PatchOp
    path: str
    value: Any


# https://jsonpatch.com/
Patch = RootModel[list[PatchAction]]


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#status-v1-meta
class AdmissionReviewStatus(BaseModel):
    message: str


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionResponse
class AdmissionResponse(BaseModel):
    allowed: bool
    status: AdmissionReviewStatus | None = None
    uid: str
    patchType: PatchType | None = None
    patch: str | None = None

    @field_validator("patch", mode="before")
    @classmethod
    def validate_patch(cls, val):
        if isinstance(val, Patch):
            val = base64.b64encode(val.model_dump_json().encode()).decode()
        elif isinstance(val, (str, bytes)):
            # Make sure the base64 string contains valid data.
            Patch.model_validate_json(base64.b64decode(val))
        return val

    @model_validator(mode="after")
    def validate_model(self):
        if self.patch and not self.patchType:
            raise ValueError("missing patchType field")
        if self.patchType and not self.patch:
            raise ValueError(f"patchType is {self.patchType} but there is no patch")

        return self


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#groupversionkind-v1-meta
class GroupVersionKind(BaseModel):
    group: str = ""
    version: str = ""
    kind: str = ""


# https://kubernetes.io/docs/reference/generated/kubernetes-api/v1.30/#userinfo-v1-authentication-k8s-io
class UserInfo(BaseModel):
    username: str = ""
    uid: str | None = None
    groups: list[str] = []


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionRequest
class AdmissionRequest(BaseModel):
    uid: str
    kind: GroupVersionKind = GroupVersionKind()
    name: str | None = None
    namespace: str | None = None
    operation: Operation = Operation.CREATE
    userInfo: UserInfo = UserInfo()
    object: dict[str, Any] | None = None
    oldObject: dict[str, Any] | None = None


# https://kubernetes.io/docs/reference/config-api/apiserver-admission.v1/#admission-k8s-io-v1-AdmissionReview
class AdmissionReview(BaseModel):
    apiVersion: Literal[ApiVersion.V1] = ApiVersion.V1
    kind: Literal["AdmissionReview"] = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None

    @model_validator(mode="after")
    def validate_model(self):
        if not (self.request or self.response):
            raise ValueError("must contain a request or a response")

        return self


class Metadata(BaseModel):
    name: str | None = None
    generateName: str | None = None
    namespace: str | None = None
    labels: dict[str, str] = {}
    annotations: dict[str, str] = {}

    @field_validator("labels", "annotations", mode="before")
    @classmethod
    def validate_null_map(cls, val):
        # The API server serializes empty maps as null.
        return {} if val is None else val


class PodSpec(BaseModel):
    schedulerName: str | None = None
    priorityClassName: str | None = None


class Pod(BaseModel):
    metadata: Metadata = Metadata()
    spec: PodSpec = PodSpec()


class PodTemplateSpec(BaseModel):
    metadata: Metadata = Metadata()


class WorkloadSpec(BaseModel):
    template: PodTemplateSpec = PodTemplateSpec()


class Workload(BaseModel):
    """Deployment, DaemonSet, StatefulSet, ReplicaSet and Job all embed their
    pod template at spec.template."""

    metadata: Metadata = Metadata()
    spec: WorkloadSpec = WorkloadSpec()

    @property
    def template_metadata(self) -> Metadata:
        return self.spec.template.metadata


class JobTemplateSpec(BaseModel):
    spec: WorkloadSpec = WorkloadSpec()


class CronJobSpec(BaseModel):
    jobTemplate: JobTemplateSpec = JobTemplateSpec()


class CronJob(BaseModel):
    metadata: Metadata = Metadata()
    spec: CronJobSpec = CronJobSpec()

    @property
    def template_metadata(self) -> Metadata:
        return self.spec.jobTemplate.spec.template.metadata


class ConfigMap(BaseModel):
    metadata: Metadata = Metadata()
    data: dict[str, str] | None = None


class UserGroup(BaseModel):
    """The value of the user info annotation."""

    user: str = ""
    groups: list[str] = []

    @field_validator("groups", mode="before")
    @classmethod
    def validate_null_groups(cls, val):
        return [] if val is None else val

    def to_annotation(self) -> str:
        if self.groups:
            return self.model_dump_json()
        return self.model_dump_json(exclude={"groups"})
