from datetime import datetime, timezone

import pytest

from fluxcore.cache import (
    ExpiringCache,
    ManifestKey,
    NotCachedError,
    TagKey,
    new_manifest_key,
    new_tag_key,
)
from fluxcore.errors import Missing
from fluxcore.image import parse_image_id


class _TestKey:
    def __init__(self, text):
        self._text = text

    def key(self):
        return self._text


VAL = b"test bytes"
KEY = _TestKey("test")


class _Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_expiry_read_write():
    cache = ExpiringCache()
    cache.set_key(KEY, VAL)
    expiry = cache.get_expiration(KEY)
    assert expiry > datetime.now(timezone.utc)


def test_read_write():
    cache = ExpiringCache()
    cache.set_key(KEY, VAL)
    assert cache.get_key(KEY) == VAL


def test_miss_raises_not_cached():
    cache = ExpiringCache()
    with pytest.raises(NotCachedError) as info:
        cache.get_key(KEY)
    assert isinstance(info.value, Missing)
    assert info.value.help.startswith("Image not yet cached")


def test_entries_expire():
    clock = _Clock()
    cache = ExpiringCache(clock=clock)
    cache.set_key("k", b"v")
    clock.now += 3600
    with pytest.raises(NotCachedError):
        cache.get_key("k")


def test_expiration_is_one_hour_ahead():
    clock = _Clock(1000.0)
    cache = ExpiringCache(clock=clock)
    cache.set_key("k", b"v")
    assert cache.get_expiration("k").timestamp() == 1000 + 3600


def test_manifest_key_format():
    image_id = parse_image_id("alpine:3.5")
    key = new_manifest_key("user", image_id)
    assert key == ManifestKey("user", "index.docker.io/library/alpine", "3.5")
    assert key.key() == "registryhistoryv2|user|index.docker.io/library/alpine|3.5"


def test_tag_key_format():
    image_id = parse_image_id("quay.io/weaveworks/flux:1.0")
    key = new_tag_key("", image_id)
    assert key == TagKey("", "quay.io/weaveworks/flux")
    assert key.key() == "registrytagsv2||quay.io/weaveworks/flux"


def test_keys_differ_by_user():
    image_id = parse_image_id("alpine")
    assert new_tag_key("a", image_id).key() != new_tag_key("b", image_id).key()