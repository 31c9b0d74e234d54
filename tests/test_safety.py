from __future__ import annotations

import pytest

from app.core.safety import is_private_ipv4, is_safe_hostname


@pytest.mark.parametrize(
    "hostname",
    [
        "",
        "localhost",
        "LOCALHOST",
        "127.0.0.1",
        "10.0.0.5",
        "192.168.1.1",
        "169.254.1.1",
        "172.16.0.1",
        "172.31.255.255",
        "0.0.0.0",
        "example.local",
        "nas.home.local",
        "::1",
        "[::1]",
        "fe80::1",
        "example.com:8080",
        "999.1.1.1",
        "1.2.3",
        "intranet",
        "example.c0m",
        "exa_mple.com",
        "example.com.",
    ],
)
def test_unsafe_hostnames(hostname):
    assert is_safe_hostname(hostname) is False


@pytest.mark.parametrize(
    "hostname",
    [
        "example.com",
        "sub.example.co.uk",
        "EXAMPLE.COM",
        "my-site.example.org",
        "xn--bcher-kva.example",
        "8.8.8.8",
        "172.32.0.1",
        "172.15.0.1",
    ],
)
def test_safe_hostnames(hostname):
    assert is_safe_hostname(hostname) is True


@pytest.mark.parametrize(
    "address, private",
    [
        ("1.1.1.1", False),
        ("10.255.255.255", True),
        ("127.10.0.1", True),
        ("169.254.0.1", True),
        ("169.253.0.1", False),
        ("192.168.0.1", True),
        ("192.169.0.1", False),
        ("256.0.0.1", True),
        ("1.2.3", True),
    ],
)
def test_private_ipv4_ranges(address, private):
    assert is_private_ipv4(address) is private
