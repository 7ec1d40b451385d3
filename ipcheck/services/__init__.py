"""
IPCheck service interfaces
"""

from abc import ABC, abstractmethod

from ipcheck.core.models import AggregateRecord

class IPService(ABC):
    """Interface for IP lookup services"""

    @abstractmethod
    async def lookup_ip(self, ip: str) -> AggregateRecord:
        """
        Look up information for an IP address

        Args:
            ip: The IP address to look up

        Returns:
            AggregateRecord with merged provider data

        Raises:
            LookupError: If lookup fails
        """
        pass
