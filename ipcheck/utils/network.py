"""
Network utility functions for IPCheck
"""

import ipaddress
import re
from typing import Any, Optional

ASN_PATTERN = re.compile(r'^\s*(?:AS)?(\d+)\b', re.IGNORECASE)

class NetworkUtils:
    """Networking utility functions"""

    @staticmethod
    def is_ipv4(ip: str) -> bool:
        """
        Check if the string is a valid IPv4 address

        Args:
            ip: String to check

        Returns:
            True if valid IPv4 address, False otherwise
        """
        try:
            ipaddress.IPv4Address(ip)
            return True
        except ValueError:
            return False

    @staticmethod
    def is_ipv6(ip: str) -> bool:
        """
        Check if the string is a valid IPv6 address

        Args:
            ip: String to check

        Returns:
            True if valid IPv6 address, False otherwise
        """
        try:
            ipaddress.IPv6Address(ip)
            return True
        except ValueError:
            return False

    @staticmethod
    def is_valid_ip(ip: str) -> bool:
        """Check if the string is a valid IPv4 or IPv6 address"""
        return NetworkUtils.is_ipv4(ip) or NetworkUtils.is_ipv6(ip)

    @staticmethod
    def is_public_ip(ip: str) -> bool:
        """
        Check if an address is globally routable

        Private, loopback, link-local, multicast, reserved and unspecified
        addresses are not public.

        Args:
            ip: IP address to check

        Returns:
            True if the address is public, False otherwise (or if invalid)
        """
        try:
            ip_obj = ipaddress.ip_address(ip)
        except ValueError:
            return False

        if ip_obj.version == 6 and ip_obj.ipv4_mapped:
            ip_obj = ip_obj.ipv4_mapped

        return not (
            ip_obj.is_private
            or ip_obj.is_loopback
            or ip_obj.is_link_local
            or ip_obj.is_multicast
            or ip_obj.is_reserved
            or ip_obj.is_unspecified
        )

    @staticmethod
    def normalize_ip(ip: str) -> str:
        """
        Canonical text form of an address, used as its cache key

        IPv6 is compressed and lower-cased; IPv4-mapped IPv6 becomes the
        plain IPv4 address.

        Raises:
            ValueError: If ip is not an IP address
        """
        ip_obj = ipaddress.ip_address(ip)
        if ip_obj.version == 6 and ip_obj.ipv4_mapped:
            ip_obj = ip_obj.ipv4_mapped
        return str(ip_obj)

    @staticmethod
    def parse_asn(value: Any) -> Optional[int]:
        """
        Extract a numeric ASN from the shapes providers report

        Accepts 15169, "15169", "AS15169" and "AS15169 Google LLC".

        Args:
            value: Raw ASN field

        Returns:
            ASN as an integer, or None if no valid ASN is present
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            asn = value
        else:
            match = ASN_PATTERN.match(str(value))
            if not match:
                return None
            asn = int(match.group(1))

        if 0 < asn <= 4294967295:
            return asn
        return None
