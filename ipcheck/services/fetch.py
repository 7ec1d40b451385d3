"""
Concurrent provider fetching
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Sequence

from ipcheck.core.models import ProviderResult
from ipcheck.core.providers import ProviderDescriptor
from ipcheck.utils.network_client import AsyncNetworkClient

logger = logging.getLogger(__name__)

class FetchExecutor:
    """Runs one phase of provider calls concurrently"""

    def __init__(self, client: AsyncNetworkClient):
        """
        Initialize the executor

        Args:
            client: Shared async HTTP client
        """
        self.client = client

    async def run_phase(
        self,
        providers: Sequence[ProviderDescriptor],
        context: Mapping[str, Any],
        timeout: float,
    ) -> List[ProviderResult]:
        """
        Query every eligible provider at once

        A dependent provider whose required field is missing from the
        context is skipped and produces no result. A failing provider
        yields an error result and never cancels its siblings.

        Args:
            providers: Descriptors to query
            context: Lookup context ("ip" plus earlier phase output)
            timeout: Per-call timeout in seconds

        Returns:
            One ProviderResult per queried provider, in the order given
        """
        eligible = []
        for provider in providers:
            if not provider.enabled:
                continue
            if provider.requires is not None and context.get(provider.requires) is None:
                logger.debug(f"Skipping {provider.name}: no {provider.requires} available")
                continue
            eligible.append(provider)

        if not eligible:
            return []

        # gather() keeps input order whatever the completion order
        return list(await asyncio.gather(
            *(self._fetch(provider, context, timeout) for provider in eligible)
        ))

    async def _fetch(
        self,
        provider: ProviderDescriptor,
        context: Mapping[str, Any],
        timeout: float,
    ) -> ProviderResult:
        try:
            url, params = provider.endpoint(context)
            raw = await asyncio.wait_for(
                self.client.get(
                    url,
                    params=params,
                    headers=dict(provider.headers) or None,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
            data: Dict[str, Any] = provider.transform(raw)
            logger.debug(f"{provider.name} returned {len(data)} fields")
            return ProviderResult(source=provider.name, data=data)
        except asyncio.TimeoutError:
            logger.warning(f"{provider.name} timed out after {timeout}s")
            return ProviderResult(source=provider.name, error=f"timed out after {timeout}s")
        except Exception as e:
            logger.warning(f"{provider.name} failed: {e}")
            return ProviderResult(source=provider.name, error=str(e) or type(e).__name__)
