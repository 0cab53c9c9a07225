import json

import pytest

from fluxcore.policy import (
    Policy,
    PolicySet,
    ServiceMap,
    is_boolean,
    policy_set_from_json,
)


def test_json_round_trip_and_list_form():
    policy = PolicySet().add(Policy.IGNORE).add(Policy.LOCKED)
    assert policy.contains(Policy.IGNORE) and policy.contains(Policy.LOCKED)

    assert policy_set_from_json(policy.to_json()) == policy

    listy = json.dumps([Policy.IGNORE.value, Policy.LOCKED.value])
    assert policy_set_from_json(listy) == policy


def test_add_does_not_mutate():
    base = PolicySet()
    added = base.add(Policy.AUTOMATED)
    assert not base.contains(Policy.AUTOMATED)
    assert added.get(Policy.AUTOMATED) == "true"


def test_set_and_get():
    s = PolicySet().set("tag.app", "glob:*")
    assert s.get("tag.app") == "glob:*"
    assert s.get(Policy.LOCKED) is None
    assert "tag.app" in s


def test_is_boolean():
    assert is_boolean(Policy.LOCKED)
    assert is_boolean("automated")
    assert not is_boolean(Policy.NONE)
    assert not is_boolean("tag.app")


def test_from_json_invalid():
    with pytest.raises(ValueError):
        policy_set_from_json("42")


def test_from_json_null_is_empty():
    assert len(policy_set_from_json("null")) == 0


def test_str_format():
    assert str(PolicySet().add(Policy.LOCKED)) == "{locked:true}"


def test_service_map():
    locked = PolicySet().add(Policy.LOCKED)
    m = ServiceMap({"default/a": locked, "default/b": PolicySet()})
    other = ServiceMap({"default/b": PolicySet()})
    assert sorted(m.to_list()) == ["default/a", "default/b"]
    assert m.contains("default/a")
    assert not m.contains("default/c")
    remaining = m.without(other)
    assert remaining == ServiceMap({"default/a": locked})
    assert len(m) == 2