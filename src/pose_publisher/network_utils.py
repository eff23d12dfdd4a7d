"""Network utility functions for joining multicast groups on physical interfaces."""

import logging
import socket

import psutil

logger = logging.getLogger(__name__)

# Virtual interface name prefixes that never carry LAN multicast traffic we want
VIRTUAL_PREFIXES = (
    "bridge",
    "docker",
    "veth",
    "vmnet",
    "vboxnet",
    "virbr",
    "tun",
    "tap",
    "utun",
    "vnic",
    "ppp",
)


def get_local_ip_addresses() -> list[str]:
    """
    Return the IPv4 addresses of physical network interfaces.

    Loopback, APIPA (169.254.x.x) and virtual interfaces are left out. Used to
    join a multicast group on every LAN-facing interface of a multi-homed host.

    Example:
        >>> get_local_ip_addresses()
        ['192.168.1.100', '10.0.0.50']
    """
    ip_addresses = []
    try:
        for interface_name, interface_addresses in psutil.net_if_addrs().items():
            if interface_name.lower().startswith(VIRTUAL_PREFIXES):
                continue

            for address in interface_addresses:
                if address.family != socket.AF_INET:
                    continue
                ip = address.address
                if ip.startswith("127.") or ip.startswith("169.254."):
                    continue
                ip_addresses.append(ip)
    except OSError as e:
        logger.warning(f"Failed to get local IP addresses: {e}")

    return ip_addresses
