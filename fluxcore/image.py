"""Container image identifiers and images with creation times."""

from __future__ import annotations

import functools
import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Union

DOCKER_HUB_HOST = "index.docker.io"
DOCKER_HUB_LIBRARY = "library"

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


class InvalidImageIDError(ValueError):
    """Raised when a string cannot be parsed as an image ID."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"{reason}: invalid image ID")
        self.reason = reason


_BLANK = "blank image name"
_MALFORMED = "expected image name as either <image>:<tag> or just <image>"


@dataclass(frozen=True)
class ImageID:
    """A fully qualified image reference: host/namespace/image:tag."""

    host: str = ""
    namespace: str = ""
    image: str = ""
    tag: str = ""

    def __str__(self) -> str:
        if not self.image:
            return ""
        suffix = f":{self.tag}" if self.tag else ""
        return f"{self.repository()}{suffix}"

    def repository(self) -> str:
        """Short repository name, trimming Docker Hub defaults."""
        name = self.host_namespace_image()
        name = name.removeprefix(DOCKER_HUB_HOST + "/")
        return name.removeprefix(DOCKER_HUB_LIBRARY + "/")

    def host_namespace_image(self) -> str:
        return f"{self.host}/{self.namespace}/{self.image}"

    def namespace_image(self) -> str:
        return f"{self.namespace}/{self.image}"

    def full_id(self) -> str:
        return f"{self.host}/{self.namespace}/{self.image}:{self.tag}"

    def components(self) -> tuple[str, str, str]:
        """Return (host, namespace/image, tag)."""
        return self.host, self.namespace_image(), self.tag

    def with_new_tag(self, tag: str) -> "ImageID":
        return replace(self, tag=tag)

    def to_json(self) -> str:
        return json.dumps(str(self))


def parse_image_id(s: str) -> ImageID:
    """Parse an image reference, filling in Docker Hub defaults."""
    if not s:
        raise InvalidImageIDError(_BLANK)
    parts = s.split(":")
    if len(parts) == 1:
        tag = "latest"
    elif len(parts) == 2:
        s, tag = parts
    else:
        raise InvalidImageIDError(_MALFORMED)
    if not s:
        raise InvalidImageIDError(_BLANK)
    segments = s.split("/")
    if len(segments) == 1:
        return ImageID(DOCKER_HUB_HOST, DOCKER_HUB_LIBRARY, segments[0], tag)
    if len(segments) == 2:
        return ImageID(DOCKER_HUB_HOST, segments[0], segments[1], tag)
    if len(segments) == 3:
        return ImageID(segments[0], segments[1], segments[2], tag)
    raise InvalidImageIDError(_MALFORMED)


def image_id_from_json(data: Union[str, bytes]) -> ImageID:
    """Decode an image ID serialised as a JSON string."""
    value = json.loads(data)
    if not isinstance(value, str):
        raise ValueError("image ID must be encoded as a JSON string")
    return parse_image_id(value)


def _format_time(t: datetime) -> str:
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    t = t.astimezone(timezone.utc)
    text = t.strftime("%Y-%m-%dT%H:%M:%S")
    if t.microsecond:
        text += "." + f"{t.microsecond:06d}".rstrip("0")
    return text + "Z"


def _parse_time(text: str) -> datetime:
    match = _RFC3339.match(text)
    if not match:
        raise ValueError(f"cannot parse {text!r} as an RFC 3339 time")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    micro = int((frac or "").ljust(6, "0")[:6])
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)
    parsed = datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second),
        micro, tzinfo=tz,
    )
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class Image:
    """An image reference with its creation time, if known."""

    id: ImageID = field(default_factory=ImageID)
    created_at: Optional[datetime] = None

    def to_json(self) -> str:
        encoded = {"ID": str(self.id)}
        if self.created_at is not None:
            encoded["CreatedAt"] = _format_time(self.created_at)
        return json.dumps(encoded, separators=(",", ":"))


def parse_image(s: str, created_at: Optional[datetime]) -> Image:
    return Image(parse_image_id(s), created_at)


def image_from_json(data: Union[str, bytes]) -> Image:
    """Decode an image; an unreadable ID is left blank."""
    value = json.loads(data)
    if not isinstance(value, dict):
        return Image()
    image_id = ImageID()
    raw_id = value.get("ID")
    if isinstance(raw_id, str):
        try:
            image_id = parse_image_id(raw_id)
        except InvalidImageIDError:
            image_id = ImageID()
    raw_time = value.get("CreatedAt")
    created_at = None
    if isinstance(raw_time, str) and raw_time:
        created_at = _parse_time(raw_time)
    return Image(image_id, created_at)


def _utc(t: datetime) -> datetime:
    return t.replace(tzinfo=timezone.utc) if t.tzinfo is None else t


def _compare(a: Image, b: Image) -> int:
    if a.created_at is None and b.created_at is None:
        return (str(a.id) > str(b.id)) - (str(a.id) < str(b.id))
    if a.created_at is None:
        return -1
    if b.created_at is None:
        return 1
    ta, tb = _utc(a.created_at), _utc(b.created_at)
    if ta == tb:
        return (str(a.id) > str(b.id)) - (str(a.id) < str(b.id))
    return -1 if ta > tb else 1


def sort_by_created_desc(images: Iterable[Image]) -> list[Image]:
    """Images without a time first, then newest first, ties by name."""
    return sorted(images, key=functools.cmp_to_key(_compare))