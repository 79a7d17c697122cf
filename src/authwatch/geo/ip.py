"""IP address helpers."""

import ipaddress


def is_private_ip(ip: str) -> bool:
    """True for private, loopback and link-local addresses.
    
    Such addresses cannot be geolocated and bypass location detection.
    Unparseable strings are not considered private.
    """
    try:
        address = ipaddress.ip_address(ip.strip())
    except (ValueError, AttributeError):
        return False
    
    return address.is_private or address.is_loopback or address.is_link_local
