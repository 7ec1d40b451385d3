"""
Input validation utilities for IPCheck
"""

from typing import Any

from ipcheck.core.exceptions import ValidationError
from ipcheck.utils.network import NetworkUtils

class Validator:
    """Input validation utilities"""

    @staticmethod
    def validate_required(value: Any, name: str) -> None:
        """
        Validate that a value is not None or empty

        Args:
            value: Value to validate
            name: Name of the value for error messages

        Raises:
            ValidationError: If value is None or empty
        """
        if value is None:
            raise ValidationError(f"{name} is required")

        if isinstance(value, (str, list, dict)) and not value:
            raise ValidationError(f"{name} cannot be empty")

    @staticmethod
    def validate_ip(ip: str) -> None:
        """
        Validate an IP address

        Args:
            ip: IP address to validate

        Raises:
            ValidationError: If IP is invalid
        """
        Validator.validate_required(ip, "IP address")

        if not NetworkUtils.is_valid_ip(ip):
            raise ValidationError(f"Invalid IP address: {ip}")

    @staticmethod
    def validate_public_ip(ip: str) -> None:
        """
        Validate that an IP address is valid and publicly routable

        Args:
            ip: IP address to validate

        Raises:
            ValidationError: If IP is invalid, or local/internal
        """
        Validator.validate_ip(ip)
        if not NetworkUtils.is_public_ip(ip):
            raise ValidationError(f"Cannot check local or internal IP address: {ip}")
