"""
Provider registry for IPCheck data sources
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from ipcheck.core.exceptions import ConfigurationError

# Field names a provider transform may emit and a dependent provider may require
CANONICAL_FIELDS = frozenset({
    "fraudScore", "isVpn", "isProxy", "isTor", "country", "countryCode",
    "region", "city", "lat", "lon", "timezone", "isp", "org", "asn",
    "isHosting", "isMobile", "abuseScore", "usageType", "connection_type",
    "totalReports", "domain", "recentAbuse", "isBot",
    "asnName", "asnOrg", "asnCountry", "asnCountryCode",
})

Endpoint = Callable[[Mapping[str, Any]], Tuple[str, Optional[Dict[str, Any]]]]
Transform = Callable[[Any], Dict[str, Any]]

@dataclass(frozen=True)
class ProviderDescriptor:
    """
    Static description of one upstream data source

    Attributes:
        name: Provider name, used as the result source
        endpoint: Builds (url, query params) from the lookup context
        transform: Maps the raw JSON body onto canonical fields
        enabled: False when the provider lacks its credentials
        headers: Extra request headers (API keys)
        requires: Phase-1 field this provider needs; set means phase 2
    """
    name: str
    endpoint: Endpoint
    transform: Transform
    enabled: bool = True
    headers: Mapping[str, str] = field(default_factory=dict)
    requires: Optional[str] = None

    @property
    def dependent(self) -> bool:
        return self.requires is not None

class ProviderRegistry:
    """
    Immutable, ordered table of provider descriptors

    Declaration order is the accuracy ranking: when two providers report
    the same field, the one declared later wins.
    """

    def __init__(self, descriptors: Sequence[ProviderDescriptor]):
        """
        Validate and freeze the provider table

        Args:
            descriptors: Provider descriptors in ranking order

        Raises:
            ConfigurationError: If a descriptor is malformed or duplicated
        """
        seen = set()
        for descriptor in descriptors:
            if not isinstance(descriptor, ProviderDescriptor):
                raise ConfigurationError(f"Not a provider descriptor: {descriptor!r}")
            if not descriptor.name:
                raise ConfigurationError("Provider name cannot be empty")
            if descriptor.name in seen:
                raise ConfigurationError(f"Duplicate provider: {descriptor.name}")
            if not callable(descriptor.endpoint) or not callable(descriptor.transform):
                raise ConfigurationError(
                    f"Provider {descriptor.name} needs callable endpoint and transform"
                )
            if descriptor.requires is not None and descriptor.requires not in CANONICAL_FIELDS:
                raise ConfigurationError(
                    f"Provider {descriptor.name} requires unknown field: {descriptor.requires}"
                )
            seen.add(descriptor.name)

        self._descriptors: Tuple[ProviderDescriptor, ...] = tuple(descriptors)
        self._rank = {d.name: i for i, d in enumerate(self._descriptors)}

    def __iter__(self) -> Iterator[ProviderDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def names(self) -> List[str]:
        """Provider names in declaration order"""
        return [d.name for d in self._descriptors]

    def get_provider(self, name: str) -> ProviderDescriptor:
        """
        Get a provider descriptor by name

        Raises:
            KeyError: If provider is not registered
        """
        if name not in self._rank:
            raise KeyError(f"Provider not found: {name}")
        return self._descriptors[self._rank[name]]

    def rank(self, name: str) -> int:
        """Declaration index of a provider; unknown names sort last"""
        return self._rank.get(name, len(self._descriptors))

    def independent(self) -> List[ProviderDescriptor]:
        """Enabled providers that only need the IP (phase 1)"""
        return [d for d in self._descriptors if d.enabled and not d.dependent]

    def dependent(self) -> List[ProviderDescriptor]:
        """Enabled providers that need phase-1 output (phase 2)"""
        return [d for d in self._descriptors if d.enabled and d.dependent]
