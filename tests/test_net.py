from unittest import mock
from urllib.error import URLError

import pytest

from hostkit.util.net import is_ip, validate_address_pool, download

VALID_POOLS = {
    "192.168.0.240-192.168.0.250": "192.168.0.240-192.168.0.250",
    "192.168.0.240 - 192.168.0.250": "192.168.0.240-192.168.0.250",
    "192.168.0.240/28": "192.168.0.240/28",
    "10.0.0.5/24": "10.0.0.0/24",
    "192.168.0.240": "192.168.0.240/32",
    "fd00::10": "fd00::10/128",
    "fd00::/120": "fd00::/120",
    " 10.1.1.1-10.1.1.9 ": "10.1.1.1-10.1.1.9",
}

INVALID_POOLS = ["", None, "abc", "192.168.0.300", "192.168.0.250-192.168.0.240",
                 "10.0.0.1-fd00::1", "10.0.0.0/33", "10.0.0.1-", "-10.0.0.1"]


def test_is_ip():
    assert is_ip("192.168.1.1")
    assert is_ip("::1")
    assert not is_ip("192.168.1")
    assert not is_ip("localhost")


def test_validate_address_pool():
    for pool, expected in VALID_POOLS.items():
        assert validate_address_pool(pool) == expected


def test_validate_address_pool_invalid():
    for pool in INVALID_POOLS:
        with pytest.raises(ValueError):
            validate_address_pool(pool)


def test_download():
    resp = mock.MagicMock()
    resp.__enter__.return_value.read.return_value = b"#!/bin/sh\n"
    with mock.patch("hostkit.util.net.urlopen", return_value=resp) as urlopen:
        assert download("https://get.k3s.io") == b"#!/bin/sh\n"
    urlopen.assert_called_once_with("https://get.k3s.io", timeout=60)


def test_download_fails():
    with mock.patch("hostkit.util.net.urlopen",
                    side_effect=URLError("no route")):
        with pytest.raises(RuntimeError):
            download("https://get.k3s.io")
