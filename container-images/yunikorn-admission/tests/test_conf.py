import pydantic
import pytest

import conf
from conf import AdmissionConf, parse_regexes, matches_any, parse_bool
from exc import RegexParseError


def test_parse_empty():
    assert parse_regexes("") == []


def test_parse_simple():
    regexes = parse_regexes("^test$")
    assert len(regexes) == 1
    assert regexes[0].search("test")
    assert not regexes[0].search("testx")
    assert not regexes[0].search("xtest")


def test_parse_compound():
    """Entries are trimmed of surrounding whitespace"""
    regexes = parse_regexes(" ^this$, ^that$ ")
    assert len(regexes) == 2
    assert regexes[0].search("this")
    assert regexes[1].search("that")


def test_parse_escaped():
    regexes = parse_regexes(r"^a\s+b$")
    assert len(regexes) == 1
    assert regexes[0].search("a \t b")
    assert not regexes[0].search("ab")


def test_parse_invalid():
    with pytest.raises(RegexParseError, match="error parsing regexp") as err:
        parse_regexes("^ok$,^($")
    assert err.value.pattern == "^($"


def test_matches_any_unanchored():
    regexes = parse_regexes("kube")
    assert matches_any(regexes, "x-kube-system")
    assert not matches_any([], "kube-system")


def test_parse_bool():
    assert parse_bool("true")
    assert parse_bool("1")
    assert not parse_bool("False")
    assert parse_bool(True)
    with pytest.raises(ValueError):
        parse_bool("maybe")


def test_defaults():
    admission_conf = AdmissionConf.from_mapping()
    assert admission_conf.scheduler_service_address == "yunikorn-service:9080"
    assert admission_conf.process_namespaces == ()
    assert [r.pattern for r in admission_conf.bypass_namespaces] == ["^kube-system$"]
    assert [r.pattern for r in admission_conf.system_users] == [
        "^system:serviceaccount:kube-system:"
    ]
    assert not admission_conf.bypass_auth
    assert admission_conf.trust_controllers


@pytest.mark.parametrize(
    "key,attr,expected",
    [
        (conf.FILTERING_PROCESS_NAMESPACES, "process_namespaces", []),
        (conf.FILTERING_BYPASS_NAMESPACES, "bypass_namespaces", ["^kube-system$"]),
        (conf.FILTERING_LABEL_NAMESPACES, "label_namespaces", []),
        (conf.FILTERING_NO_LABEL_NAMESPACES, "no_label_namespaces", []),
        (
            conf.ACCESS_CONTROL_SYSTEM_USERS,
            "system_users",
            ["^system:serviceaccount:kube-system:"],
        ),
        (conf.ACCESS_CONTROL_EXTERNAL_USERS, "external_users", []),
        (conf.ACCESS_CONTROL_EXTERNAL_GROUPS, "external_groups", []),
    ],
)
def test_bad_regex_falls_back_to_default(key, attr, expected):
    admission_conf = AdmissionConf.from_mapping({key: "("})
    assert [r.pattern for r in getattr(admission_conf, attr)] == expected


def test_bad_bool_falls_back_to_default():
    admission_conf = AdmissionConf.from_mapping(
        {
            conf.ACCESS_CONTROL_BYPASS_AUTH: "sometimes",
            conf.ACCESS_CONTROL_TRUST_CONTROLLERS: "never",
        }
    )
    assert not admission_conf.bypass_auth
    assert admission_conf.trust_controllers


def test_conf_is_immutable():
    admission_conf = AdmissionConf.from_mapping()
    with pytest.raises(pydantic.ValidationError):
        admission_conf.bypass_auth = True
