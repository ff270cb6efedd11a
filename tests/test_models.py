"""Tests for the shared models."""

import json

import pytest
from conftest import make_descriptor, make_item

from media_session.errors import CredentialCorruptError
from media_session.models import (
    AlertKind,
    MediaItem,
    ServerAnnouncement,
    SessionAlert,
    SessionDescriptor,
)


@pytest.mark.parametrize(
    "descriptor",
    [
        make_descriptor(),
        make_descriptor(host="media.example.com", port=443, use_tls=True),
        make_descriptor(user_id="ünïcode", token="t\"o'k\\en"),
    ],
)
def test_descriptor_round_trip_is_stable(descriptor) -> None:
    blob = descriptor.to_bytes()
    restored = SessionDescriptor.from_bytes(blob)

    assert restored == descriptor
    assert restored.to_bytes() == blob


def test_descriptor_wire_format() -> None:
    raw = json.loads(make_descriptor(use_tls=True).to_bytes())
    assert raw == {
        "server": {"host": "10.0.0.5", "port": 8096, "useTLS": True},
        "user": {"userId": "user-1", "accessToken": "token-1"},
    }


@pytest.mark.parametrize(
    "blob",
    [
        b"",
        b"\xff\xfe",
        b"[]",
        b'{"server": {}}',
        b'{"server": {"host": "h", "port": "80"}, "user": {"userId": "u", "accessToken": "t"}}',
        b'{"server": {"host": "h", "port": 80, "useTLS": "no"}, "user": {"userId": "u", "accessToken": "t"}}',
        b'{"server": {"host": "h", "port": 80}, "user": {"userId": 1, "accessToken": "t"}}',
    ],
)
def test_descriptor_rejects_corrupt_blob(blob) -> None:
    with pytest.raises(CredentialCorruptError):
        SessionDescriptor.from_bytes(blob)


def test_descriptor_describe() -> None:
    assert make_descriptor().describe() == "user-1@10.0.0.5:8096"
    assert make_descriptor(use_tls=True).describe() == "(HTTPS) user-1@10.0.0.5:8096"
    assert make_descriptor(use_tls=True, port=8920).base_url == "https://10.0.0.5:8920"


def test_media_item_identity_is_id() -> None:
    assert make_item("a") == make_item("a", container="mkv")
    assert make_item("a") != make_item("b")
    assert len({make_item("a"), make_item("a")}) == 1


def test_media_item_from_api() -> None:
    item = MediaItem.from_api(
        {
            "Id": "42",
            "Name": "Movie",
            "Type": "Movie",
            "MediaSources": [
                {"Id": "s1", "Type": "Default", "Container": "mkv"},
                {"Id": "s2", "Type": "Default", "Container": "mp4"},
            ],
        }
    )
    assert [source.id for source in item.playable_sources] == ["s2"]


def test_announcement_identity_is_id() -> None:
    first = ServerAnnouncement(id="srv", host="10.0.0.5", port=8096, server_name="Old")
    later = ServerAnnouncement(id="srv", host="10.0.0.6", port=8920, server_name="New")
    assert first == later
    assert len({first, later}) == 1


def test_alert_keys() -> None:
    alert = SessionAlert.create(AlertKind.API, "fetch_failed")
    assert alert.title == "alerts.api.title"
    assert alert.detail == "alerts.api.fetch_failed"


def test_base_url_brackets_ipv6_hosts() -> None:
    assert make_descriptor(host="fe80::1").base_url == "http://[fe80::1]:8096"
    assert make_descriptor(host="media.lan", use_tls=True, port=8920).base_url == (
        "https://media.lan:8920"
    )
