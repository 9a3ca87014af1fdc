import logging
from typing import NamedTuple

import pydantic

from conf import AdmissionConf, matches_any
from constants import ANNOTATION_USER_INFO
from exc import AnnotationFormatError
from models import UserGroup, UserInfo

LOG = logging.getLogger(__name__)


class AccessDecision(NamedTuple):
    allowed: bool
    message: str | None = None
    # New user info annotation value, None when the annotation stays as is.
    annotation: str | None = None


def decode_user_info(value: str) -> UserGroup:
    try:
        return UserGroup.model_validate_json(value)
    except pydantic.ValidationError as err:
        detail = "; ".join(error["msg"] for error in err.errors())
        raise AnnotationFormatError(f"invalid user info annotation: {detail}")


class AccessControl:
    """Decides who may set the user info annotation that the scheduler uses to
    enforce queue ACLs, and what the annotation should contain."""

    def __init__(self, conf: AdmissionConf):
        self._conf = conf

    def is_system_user(self, user_info: UserInfo) -> bool:
        patterns = self._conf.system_users
        return matches_any(patterns, user_info.username) or any(
            matches_any(patterns, group) for group in user_info.groups
        )

    def is_trusted_controller(self, user_info: UserInfo) -> bool:
        return self._conf.trust_controllers and self.is_system_user(user_info)

    def is_external_user(self, user_info: UserInfo) -> bool:
        if matches_any(self._conf.external_users, user_info.username):
            return True
        return any(
            matches_any(self._conf.external_groups, group) for group in user_info.groups
        )

    def check_annotation(
        self,
        user_info: UserInfo,
        annotations: dict[str, str],
        old_annotations: dict[str, str] | None = None,
        generate: bool = False,
    ) -> AccessDecision:
        """Validate the user info annotation in `annotations`.

        `old_annotations` holds the annotations of the previous version of the
        object on update; an unchanged annotation needs no authorization.
        With `generate` set, a missing annotation is filled in with the
        submitter's identity.
        """
        value = annotations.get(ANNOTATION_USER_INFO)
        old_value = (old_annotations or {}).get(ANNOTATION_USER_INFO)

        user_group = None
        if value is not None:
            try:
                user_group = decode_user_info(value)
            except AnnotationFormatError as err:
                LOG.info("rejecting annotation from %s: %s", user_info.username, err)
                return AccessDecision(False, str(err))

        if self.is_trusted_controller(user_info):
            LOG.debug("trusted controller %s", user_info.username)
            return AccessDecision(True)

        if self._conf.bypass_auth:
            if user_group is None:
                return AccessDecision(True)
            stripped = UserGroup(user=user_group.user).to_annotation()
            if stripped == value:
                return AccessDecision(True)
            return AccessDecision(True, annotation=stripped)

        if user_group is not None:
            if value == old_value or self.is_external_user(user_info):
                return AccessDecision(True)
            message = (
                f"user {user_info.username} with groups "
                f"[{','.join(user_info.groups)}] is not allowed to set user annotation"
            )
            LOG.info("%s", message)
            return AccessDecision(False, message)

        if generate:
            user_group = UserGroup(user=user_info.username, groups=user_info.groups)
            return AccessDecision(True, annotation=user_group.to_annotation())

        return AccessDecision(True)
