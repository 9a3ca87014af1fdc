import logging
import re
from typing import Mapping

from pydantic import BaseModel, ConfigDict

from exc import RegexParseError

LOG = logging.getLogger(__name__)

PREFIX = "admissionController."

WEBHOOK_SCHEDULER_SERVICE_ADDRESS = PREFIX + "webHook.schedulerServiceAddress"
FILTERING_PROCESS_NAMESPACES = PREFIX + "filtering.processNamespaces"
FILTERING_BYPASS_NAMESPACES = PREFIX + "filtering.bypassNamespaces"
FILTERING_LABEL_NAMESPACES = PREFIX + "filtering.labelNamespaces"
FILTERING_NO_LABEL_NAMESPACES = PREFIX + "filtering.noLabelNamespaces"
ACCESS_CONTROL_BYPASS_AUTH = PREFIX + "accessControl.bypassAuth"
ACCESS_CONTROL_TRUST_CONTROLLERS = PREFIX + "accessControl.trustControllers"
ACCESS_CONTROL_SYSTEM_USERS = PREFIX + "accessControl.systemUsers"
ACCESS_CONTROL_EXTERNAL_USERS = PREFIX + "accessControl.externalUsers"
ACCESS_CONTROL_EXTERNAL_GROUPS = PREFIX + "accessControl.externalGroups"


class DEFAULTS:
    SCHEDULER_SERVICE_ADDRESS = "yunikorn-service:9080"
    PROCESS_NAMESPACES = ""
    BYPASS_NAMESPACES = "^kube-system$"
    LABEL_NAMESPACES = ""
    NO_LABEL_NAMESPACES = ""
    BYPASS_AUTH = False
    TRUST_CONTROLLERS = True
    SYSTEM_USERS = "^system:serviceaccount:kube-system:"
    EXTERNAL_USERS = ""
    EXTERNAL_GROUPS = ""


def parse_regexes(value: str) -> list[re.Pattern]:
    """Compile a comma separated list of regular expressions.

    Entries are stripped of surrounding whitespace and empty entries are
    skipped, so an empty string yields an empty list.
    """
    patterns = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            patterns.append(re.compile(entry))
        except re.error as err:
            raise RegexParseError(entry, err)
    return patterns


def matches_any(patterns, value: str) -> bool:
    return any(pattern.search(value) for pattern in patterns)


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    val = str(value).strip()
    if val in ("1", "t", "T", "true", "TRUE", "True"):
        return True
    if val in ("0", "f", "F", "false", "FALSE", "False"):
        return False
    raise ValueError(f"invalid boolean value {value!r}")


def _regexes(config: Mapping, key: str, default: str) -> tuple[re.Pattern, ...]:
    value = config.get(key)
    if value is None:
        value = default
    try:
        return tuple(parse_regexes(value))
    except RegexParseError as err:
        LOG.error("unable to parse %s, using default %r: %s", key, default, err)
        return tuple(parse_regexes(default))


def _bool(config: Mapping, key: str, default: bool) -> bool:
    value = config.get(key, default)
    try:
        return parse_bool(value)
    except ValueError as err:
        LOG.error("unable to parse %s, using default %s: %s", key, default, err)
        return default


class AdmissionConf(BaseModel):
    """Immutable admission controller settings."""

    model_config = ConfigDict(frozen=True)

    scheduler_service_address: str = DEFAULTS.SCHEDULER_SERVICE_ADDRESS
    process_namespaces: tuple[re.Pattern, ...] = ()
    bypass_namespaces: tuple[re.Pattern, ...] = ()
    label_namespaces: tuple[re.Pattern, ...] = ()
    no_label_namespaces: tuple[re.Pattern, ...] = ()
    bypass_auth: bool = DEFAULTS.BYPASS_AUTH
    trust_controllers: bool = DEFAULTS.TRUST_CONTROLLERS
    system_users: tuple[re.Pattern, ...] = ()
    external_users: tuple[re.Pattern, ...] = ()
    external_groups: tuple[re.Pattern, ...] = ()

    @classmethod
    def from_mapping(cls, config: Mapping | None = None) -> "AdmissionConf":
        """Build the settings from a mapping of YuniKorn configuration keys.

        A list that fails to parse falls back to its default rather than
        failing startup.
        """
        config = config or {}
        return cls(
            scheduler_service_address=config.get(
                WEBHOOK_SCHEDULER_SERVICE_ADDRESS, DEFAULTS.SCHEDULER_SERVICE_ADDRESS
            ),
            process_namespaces=_regexes(
                config, FILTERING_PROCESS_NAMESPACES, DEFAULTS.PROCESS_NAMESPACES
            ),
            bypass_namespaces=_regexes(
                config, FILTERING_BYPASS_NAMESPACES, DEFAULTS.BYPASS_NAMESPACES
            ),
            label_namespaces=_regexes(
                config, FILTERING_LABEL_NAMESPACES, DEFAULTS.LABEL_NAMESPACES
            ),
            no_label_namespaces=_regexes(
                config, FILTERING_NO_LABEL_NAMESPACES, DEFAULTS.NO_LABEL_NAMESPACES
            ),
            bypass_auth=_bool(
                config, ACCESS_CONTROL_BYPASS_AUTH, DEFAULTS.BYPASS_AUTH
            ),
            trust_controllers=_bool(
                config, ACCESS_CONTROL_TRUST_CONTROLLERS, DEFAULTS.TRUST_CONTROLLERS
            ),
            system_users=_regexes(
                config, ACCESS_CONTROL_SYSTEM_USERS, DEFAULTS.SYSTEM_USERS
            ),
            external_users=_regexes(
                config, ACCESS_CONTROL_EXTERNAL_USERS, DEFAULTS.EXTERNAL_USERS
            ),
            external_groups=_regexes(
                config, ACCESS_CONTROL_EXTERNAL_GROUPS, DEFAULTS.EXTERNAL_GROUPS
            ),
        )
