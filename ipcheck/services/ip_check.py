"""
IP check pipeline: phased provider queries, merge and classification
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ipcheck.core.config import Config
from ipcheck.core.exceptions import LookupError, LookupTimeoutError
from ipcheck.core.models import AggregateRecord
from ipcheck.core.providers import ProviderRegistry
from ipcheck.services import IPService
from ipcheck.services.analysis import AnalysisClient, AnalysisFailure, AnalysisOutcome
from ipcheck.services.fetch import FetchExecutor
from ipcheck.services.merge import (
    classify, detect_dual_isp, determine_nativity, merge
)
from ipcheck.utils.network import NetworkUtils

logger = logging.getLogger(__name__)

# Share of lookup_timeout kept back from the analysis call
DEADLINE_RESERVE = 0.05

class IPCheckService(IPService):
    """Aggregates every configured provider into one record per IP"""

    def __init__(
        self,
        config: Config,
        registry: ProviderRegistry,
        executor: FetchExecutor,
        analysis: Optional[AnalysisClient] = None,
    ):
        """
        Initialize the IP check service

        Args:
            config: Configuration object
            registry: Provider table
            executor: Fetch executor used for every phase
            analysis: Analysis client, None when not configured
        """
        self.config = config
        self.registry = registry
        self.executor = executor
        self.analysis = analysis

    async def lookup_ip(self, ip: str) -> AggregateRecord:
        """
        Look up information for an IP address

        The caller is expected to pass a validated public address.

        Args:
            ip: The IP address to look up

        Returns:
            AggregateRecord with merged provider data

        Raises:
            LookupError: If no provider returned data
            LookupTimeoutError: If the pipeline exceeded lookup_timeout
        """
        try:
            deadline = asyncio.get_running_loop().time() + self.config.lookup_timeout
            return await asyncio.wait_for(self._run(ip, deadline), timeout=self.config.lookup_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Lookup for {ip} exceeded {self.config.lookup_timeout}s")
            raise LookupTimeoutError(f"Lookup for {ip} timed out after {self.config.lookup_timeout}s")

    async def _run(self, ip: str, deadline: float) -> AggregateRecord:
        # Phase 1: providers that only need the address
        phase1 = await self.executor.run_phase(
            self.registry.independent(), {"ip": ip}, self.config.phase1_timeout
        )
        partial, _, _ = merge(phase1, self.registry.rank)

        # Phase 2: providers keyed on phase-1 output
        context: Dict[str, Any] = {"ip": ip}
        asn = NetworkUtils.parse_asn(partial.get("asn"))
        if asn is not None:
            context["asn"] = asn
        phase2 = await self.executor.run_phase(
            self.registry.dependent(), context, self.config.phase2_timeout
        )

        fields, sources, errors = merge(phase1 + phase2, self.registry.rank)
        if not sources:
            logger.error(f"Every provider failed for {ip}")
            raise LookupError(f"No provider returned data for {ip}", errors)

        analysis = None
        if self.analysis is not None:
            analysis = await self._analyze(ip, fields, deadline)

        classification = classify(fields, analysis)
        nativity = determine_nativity(fields)

        logger.info(f"Looked up {ip}: sources={sources} errors={len(errors)} type={classification.label}")

        return AggregateRecord(
            ip=ip,
            fields=fields,
            sources=sources,
            errors=errors,
            ip_type=classification.label,
            ai_reasoning=classification.reasoning,
            is_native=nativity.is_native,
            native_reason=nativity.reason,
            is_dual_isp=detect_dual_isp(fields),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    async def _analyze(self, ip: str, fields: Dict[str, Any], deadline: float) -> AnalysisOutcome:
        """Run the analysis within what is left of the lookup deadline"""
        # Keep a slice of the deadline for classification and record building
        reserve = self.config.lookup_timeout * DEADLINE_RESERVE
        remaining = deadline - asyncio.get_running_loop().time() - reserve
        if remaining <= 0:
            return AnalysisFailure("no time left before the lookup deadline")

        try:
            return await asyncio.wait_for(self.analysis.analyze(ip, fields), timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning(f"Analysis for {ip} cut off at the lookup deadline")
            return AnalysisFailure(f"timed out after {remaining:.2f}s")
