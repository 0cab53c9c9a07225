"""Deployment policies for services."""

from __future__ import annotations

import json
from enum import Enum
from typing import Iterable, Iterator, Mapping, Optional, Union


class Policy(str, Enum):
    """Known deployment policies."""

    NONE = ""
    IGNORE = "ignore"
    LOCKED = "locked"
    AUTOMATED = "automated"

    def __str__(self) -> str:
        return self.value


def is_boolean(policy: str) -> bool:
    """Whether the policy is an on/off flag."""
    return policy in (Policy.LOCKED, Policy.AUTOMATED, Policy.IGNORE)


def _key(policy: str) -> str:
    return policy.value if isinstance(policy, Policy) else str(policy)


class PolicySet:
    """An immutable mapping from policy to value."""

    def __init__(self, items: Optional[Mapping[str, str]] = None) -> None:
        self._items: dict[str, str] = {
            _key(p): v for p, v in (items or {}).items()
        }

    def add(self, *args: str) -> "PolicySet":
        """Return a copy with each given policy set to "true"."""
        items = dict(self._items)
        for policy in args:
            items[_key(policy)] = "true"
        return PolicySet(items)

    def set(self, policy: str, value: str) -> "PolicySet":
        items = dict(self._items)
        items[_key(policy)] = value
        return PolicySet(items)

    def contains(self, policy: str) -> bool:
        return _key(policy) in self._items

    def get(self, policy: str) -> Optional[str]:
        return self._items.get(_key(policy))

    def items(self):
        return self._items.items()

    def to_json(self) -> str:
        return json.dumps(self._items, sort_keys=True, separators=(",", ":"))

    def __contains__(self, policy: object) -> bool:
        return isinstance(policy, str) and self.contains(policy)

    def __getitem__(self, policy: str) -> str:
        return self._items[_key(policy)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PolicySet):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._items.items()))

    def __str__(self) -> str:
        return "{" + ", ".join(f"{p}:{v}" for p, v in self._items.items()) + "}"

    def __repr__(self) -> str:
        return f"PolicySet({self._items!r})"


def policy_set_from_json(data: Union[str, bytes]) -> PolicySet:
    """Decode a policy set, given as an object or as a list of policies."""
    value = json.loads(data)
    if value is None:
        return PolicySet()
    if isinstance(value, dict) and all(isinstance(v, str) for v in value.values()):
        return PolicySet(value)
    if isinstance(value, list) and all(isinstance(p, str) for p in value):
        return PolicySet().add(*value)
    raise ValueError("policy set must be an object of strings or a list of policies")


class ServiceMap(dict):
    """Policy sets keyed by service ID."""

    def to_list(self) -> list[str]:
        return list(self)

    def contains(self, service_id: str) -> bool:
        return service_id in self

    def without(self, other: "ServiceMap") -> "ServiceMap":
        return ServiceMap({k: v for k, v in self.items() if not other.contains(k)})


def _from_items(pairs: Iterable[tuple[str, PolicySet]]) -> ServiceMap:
    return ServiceMap(pairs)