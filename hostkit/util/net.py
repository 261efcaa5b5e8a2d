"""Contains utility functions for network stuff"""

from urllib.request import urlopen
from urllib.error import URLError, HTTPError

from netaddr import IPNetwork, IPRange, valid_ipv4, valid_ipv6
from netaddr.core import AddrFormatError


def is_ip(ip):
    """Checks if an IP is a valid IPv4 or IPv6 address"""

    # netaddr raises on empty strings
    if not ip:
        return False
    return valid_ipv4(ip) or valid_ipv6(ip)


def validate_address_pool(pool):
    """Validates a MetalLB address pool entry.

    Accepted forms are a CIDR (``192.168.0.240/28``), a range of two
    addresses of the same family (``192.168.0.240-192.168.0.250``) or a
    single address, which is turned into a host route.

    Args:
        pool (str): The pool as typed by the user.

    Returns:
        The normalized pool string.

    Raises:
        ValueError if the pool is not valid.
    """
    pool = (pool or "").strip()
    if not pool:
        raise ValueError("address pool can't be empty")

    if "-" in pool:
        first, _, last = (part.strip() for part in pool.partition("-"))
        if not (is_ip(first) and is_ip(last)):
            raise ValueError(f"invalid address range '{pool}'")
        if valid_ipv4(first) != valid_ipv4(last):
            raise ValueError(f"mixed address families in '{pool}'")
        try:
            IPRange(first, last)
        except AddrFormatError as exc:
            raise ValueError(f"invalid address range '{pool}': {exc}")
        return f"{first}-{last}"

    if "/" in pool:
        try:
            network = IPNetwork(pool)
        except (AddrFormatError, ValueError) as exc:
            raise ValueError(f"invalid CIDR '{pool}': {exc}")
        return str(network.cidr)

    if is_ip(pool):
        prefix = 32 if valid_ipv4(pool) else 128
        return f"{pool}/{prefix}"

    raise ValueError(f"invalid address pool '{pool}'")


def download(url, timeout=60):
    """Fetch ``url`` and return the body as bytes.

    Raises:
        RuntimeError if the download fails.
    """
    try:
        with urlopen(url, timeout=timeout) as resp:
            return resp.read()
    except (HTTPError, URLError) as exc:
        raise RuntimeError(f"unable to download {url}: {exc}")
