import json
from datetime import datetime, timedelta, timezone

import pytest

from fluxcore.image import (
    Image,
    ImageID,
    InvalidImageIDError,
    image_from_json,
    image_id_from_json,
    parse_image,
    parse_image_id,
    sort_by_created_desc,
)

TEST_TIME = datetime(2017, 1, 13, 16, 22, 58, 9923, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("alpine", "alpine:latest"),
        ("library/alpine", "alpine:latest"),
        ("alpine:mytag", "alpine:mytag"),
        ("quay.io/library/alpine", "quay.io/library/alpine:latest"),
        ("quay.io/library/alpine:latest", "quay.io/library/alpine:latest"),
        ("quay.io/library/alpine:mytag", "quay.io/library/alpine:mytag"),
    ],
)
def test_parse_image_id(text, expected):
    assert str(parse_image_id(text)) == expected


@pytest.mark.parametrize(
    "text", ["", ":tag", "alpine::", "alpine:invalid:", "/too/many/slashes/"]
)
def test_parse_image_id_errors(text):
    with pytest.raises(InvalidImageIDError):
        parse_image_id(text)


def test_components():
    fqn = "quay.io/namespace/myrepo:mytag"
    i = parse_image_id(fqn)
    assert i.host == "quay.io"
    assert i.namespace == "namespace"
    assert i.image == "myrepo"
    assert i.tag == "mytag"
    assert str(i) == fqn
    assert i.components() == ("quay.io", "namespace/myrepo", "mytag")


@pytest.mark.parametrize(
    "image_id, expected",
    [
        (ImageID("index.docker.io", "library", "alpine", "a123"), '"alpine:a123"'),
        (ImageID("quay.io", "weaveworks", "foobar", "baz"), '"quay.io/weaveworks/foobar:baz"'),
    ],
)
def test_serialization(image_id, expected):
    assert image_id.to_json() == expected
    assert image_id_from_json(expected) == image_id


def test_image_id_from_json_rejects_non_string():
    with pytest.raises(ValueError):
        image_id_from_json("42")


def test_full_names_and_new_tag():
    i = parse_image_id("alpine")
    assert i.host_namespace_image() == "index.docker.io/library/alpine"
    assert i.full_id() == "index.docker.io/library/alpine:latest"
    j = i.with_new_tag("3.5")
    assert j.tag == "3.5"
    assert i.tag == "latest"
    assert j.namespace_image() == i.namespace_image()


def test_empty_image_id_string():
    assert str(ImageID()) == ""


def test_order_by_creation_date():
    im_a = parse_image("my/Image:3", TEST_TIME)
    im_b = parse_image("my/Image:1", TEST_TIME + timedelta(seconds=1))
    im_c = parse_image("my/Image:4", TEST_TIME - timedelta(seconds=1))
    im_d = parse_image("my/Image:0", None)
    im_e = parse_image("my/Image:2", TEST_TIME)
    ordered = sort_by_created_desc([im_a, im_b, im_c, im_d, im_e])
    assert [im.id.tag for im in ordered] == ["0", "1", "2", "3", "4"]


def test_image_json_round_trip():
    img = parse_image("quay.io/weaveworks/foobar:baz", TEST_TIME)
    encoded = img.to_json()
    assert json.loads(encoded)["CreatedAt"] == "2017-01-13T16:22:58.009923Z"
    assert image_from_json(encoded) == img


def test_image_json_without_time():
    img = parse_image("alpine:3", None)
    encoded = img.to_json()
    assert "CreatedAt" not in json.loads(encoded)
    assert image_from_json(encoded) == img


def test_image_from_json_nanoseconds():
    decoded = image_from_json('{"ID":"alpine","CreatedAt":"2017-01-13T16:22:58.009923189Z"}')
    assert decoded.created_at == TEST_TIME
    assert decoded.id == parse_image_id("alpine")


def test_image_from_json_bad_time():
    with pytest.raises(ValueError):
        image_from_json('{"ID":"alpine","CreatedAt":"yesterday"}')


def test_parse_image_propagates_error():
    with pytest.raises(InvalidImageIDError):
        parse_image("", TEST_TIME)


def test_image_default_is_blank():
    assert image_from_json("[]") == Image()