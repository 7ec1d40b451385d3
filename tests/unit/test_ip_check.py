"""
Unit tests for IPCheckService
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from ipcheck.core.exceptions import APIError, LookupError, LookupTimeoutError, NetworkError
from ipcheck.core.providers.builtin import build_default_providers
from ipcheck.services.analysis import AnalysisFailure, AnalysisResult
from ipcheck.services.fetch import FetchExecutor
from ipcheck.services.ip_check import IPCheckService

IP = "8.8.8.8"
IPAPI_URL = f"http://ip-api.com/json/{IP}"
IPQS_URL = f"https://www.ipqualityscore.com/api/json/ip/ipqs-key/{IP}"
RADAR_URL = "https://api.cloudflare.com/client/v4/radar/entities/asns/15169"

# Response that never arrives
HANG = object()

IPAPI_OK = {
    "status": "success", "country": "United States", "countryCode": "US", "city": "Mountain View",
    "isp": "Google LLC", "org": "Google Public DNS", "as": "AS15169 Google LLC",
    "mobile": False, "proxy": False, "hosting": True,
}
IPQS_OK = {
    "success": True, "fraud_score": 0, "vpn": False, "proxy": False, "tor": False,
    "ISP": "Google", "organization": "Google", "ASN": 15169, "country_code": "US",
    "connection_type": "Premium required.", "mobile": False,
}
RADAR_OK = {
    "success": True, "errors": [],
    "result": {"asn": {"asn": 15169, "name": "GOOGLE", "country": "US", "orgName": "Google LLC"}},
}

class FakeClient:
    """Stands in for AsyncNetworkClient; responses keyed by URL"""

    def __init__(self, responses, delay=0.0):
        self.responses = responses
        self.delay = delay
        self.calls = []

    async def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append(url)
        await asyncio.sleep(self.delay)
        if url not in self.responses:
            raise APIError("TEST", "HTTP 404: Not Found", 404)
        response = self.responses[url]
        if response is HANG:
            await asyncio.sleep(3600)
        if isinstance(response, Exception):
            raise response
        return response

def _config(lookup_timeout=32.0, phase1_timeout=5.0, phase2_timeout=10.0):
    config = MagicMock()
    config.ipqs_key = "ipqs-key"
    config.cloudflare_token = "radar-token"
    config.abuseipdb_key = None
    config.ip2location_key = None
    config.ipdata_key = None
    config.phase1_timeout = phase1_timeout
    config.phase2_timeout = phase2_timeout
    config.lookup_timeout = lookup_timeout
    return config

def _service(responses, analysis=None, delay=0.0, lookup_timeout=32.0, **timeouts):
    config = _config(lookup_timeout, **timeouts)
    client = FakeClient(responses, delay)
    service = IPCheckService(config, build_default_providers(config), FetchExecutor(client), analysis)
    return service, client

class TestIPCheckService(unittest.IsolatedAsyncioTestCase):
    """Test IPCheckService class"""

    async def test_two_phase_lookup(self):
        """Test phase 2 receives the ASN merged from phase 1"""
        service, client = _service({IPAPI_URL: IPAPI_OK, IPQS_URL: IPQS_OK, RADAR_URL: RADAR_OK})

        record = await service.lookup_ip(IP)

        self.assertEqual(record.sources, ["ipapi", "ipqs", "cloudflare"])
        self.assertEqual(record.errors, [])
        self.assertIn(RADAR_URL, client.calls)
        # ipqs is declared after ipapi, so its ISP name wins
        self.assertEqual(record.fields["isp"], "Google")
        self.assertEqual(record.fields["asnCountryCode"], "US")
        self.assertTrue(record.is_native)
        self.assertFalse(record.is_dual_isp)
        # Placeholder connection type skipped, hosting flag decides
        self.assertEqual(record.ip_type, "Data Center")
        self.assertTrue(record.timestamp)
        self.assertFalse(record.from_cache)

    async def test_phase_two_skipped_without_asn(self):
        """Test no ASN means no call to, and no error from, the ASN provider"""
        ipapi = {k: v for k, v in IPAPI_OK.items() if k != "as"}
        ipqs = {k: v for k, v in IPQS_OK.items() if k != "ASN"}
        service, client = _service({IPAPI_URL: ipapi, IPQS_URL: ipqs})

        record = await service.lookup_ip(IP)

        self.assertNotIn(RADAR_URL, client.calls)
        self.assertEqual(record.sources, ["ipapi", "ipqs"])
        self.assertEqual(record.errors, [])
        self.assertIn("Insufficient data", record.native_reason)

    async def test_partial_failure(self):
        """Test a failing provider is reported while others still count"""
        service, _ = _service({
            IPAPI_URL: NetworkError("Connection error: refused", "IP-API"),
            IPQS_URL: IPQS_OK,
            RADAR_URL: RADAR_OK,
        })

        record = await service.lookup_ip(IP)

        self.assertEqual(record.sources, ["ipqs", "cloudflare"])
        self.assertEqual([e["source"] for e in record.errors], ["ipapi"])
        self.assertEqual(record.fields["fraudScore"], 0)

    async def test_application_error_is_not_merged(self):
        """Test an upstream error body is recorded as an error"""
        service, _ = _service({
            IPAPI_URL: IPAPI_OK,
            IPQS_URL: {"success": False, "message": "Invalid or unauthorized key."},
            RADAR_URL: RADAR_OK,
        })

        record = await service.lookup_ip(IP)

        self.assertNotIn("ipqs", record.sources)
        self.assertNotIn("fraudScore", record.fields)
        self.assertIn("unauthorized", record.errors[0]["error"])

    async def test_total_failure_raises(self):
        """Test a lookup with no data at all raises LookupError"""
        service, client = _service({
            IPAPI_URL: NetworkError("Request timed out", "IP-API"),
            IPQS_URL: APIError("IPQUALITYSCORE", "HTTP 503: Service Unavailable", 503),
        })

        with self.assertRaises(LookupError) as ctx:
            await service.lookup_ip(IP)

        self.assertEqual([e["source"] for e in ctx.exception.errors], ["ipapi", "ipqs"])
        self.assertNotIn(RADAR_URL, client.calls)

    async def test_analysis_label_used(self):
        """Test a configured analysis service decides the type"""
        analysis = MagicMock()
        analysis.analyze = AsyncMock(return_value=AnalysisResult("Fixed Line ISP", "Consumer broadband"))
        service, _ = _service({IPAPI_URL: IPAPI_OK, IPQS_URL: IPQS_OK, RADAR_URL: RADAR_OK}, analysis)

        record = await service.lookup_ip(IP)

        self.assertEqual(record.ip_type, "Residential")
        self.assertEqual(record.ai_reasoning, "Consumer broadband")
        analysis.analyze.assert_awaited_once()

    async def test_analysis_failure_falls_back(self):
        """Test an analysis failure still yields a heuristic type"""
        analysis = MagicMock()
        analysis.analyze = AsyncMock(return_value=AnalysisFailure("HTTP 500"))
        service, _ = _service({IPAPI_URL: IPAPI_OK, IPQS_URL: IPQS_OK, RADAR_URL: RADAR_OK}, analysis)

        record = await service.lookup_ip(IP)

        self.assertEqual(record.ip_type, "Data Center")
        self.assertIn("HTTP 500", record.ai_reasoning)

    async def test_overall_deadline(self):
        """Test the whole pipeline is bounded by lookup_timeout"""
        service, _ = _service({IPAPI_URL: IPAPI_OK, IPQS_URL: IPQS_OK}, delay=1.0, lookup_timeout=0.05)

        with self.assertRaises(LookupTimeoutError):
            await service.lookup_ip(IP)

    async def test_slow_stages_still_yield_record(self):
        """Test every stage running to its own timeout keeps the partial result"""
        async def hanging_analysis(ip, fields):
            await asyncio.sleep(3600)

        analysis = MagicMock()
        analysis.analyze = hanging_analysis
        service, client = _service(
            {IPAPI_URL: IPAPI_OK, IPQS_URL: HANG, RADAR_URL: HANG},
            analysis,
            lookup_timeout=0.6,
            phase1_timeout=0.1,
            phase2_timeout=0.2,
        )

        record = await service.lookup_ip(IP)

        self.assertEqual(record.sources, ["ipapi"])
        self.assertEqual([e["source"] for e in record.errors], ["ipqs", "cloudflare"])
        self.assertIn(RADAR_URL, client.calls)
        self.assertEqual(record.ip_type, "Data Center")
        self.assertIn("Analysis unavailable", record.ai_reasoning)

    async def test_output_record_shape(self):
        """Test the flattened output carries fields and derived keys"""
        service, _ = _service({IPAPI_URL: IPAPI_OK, IPQS_URL: IPQS_OK, RADAR_URL: RADAR_OK})

        data = (await service.lookup_ip(IP)).to_dict()

        for key in ("ip", "sources", "errors", "ipType", "aiReasoning", "isNative",
                    "nativeReason", "isDualIsp", "timestamp", "fromCache", "isp", "countryCode"):
            self.assertIn(key, data)

if __name__ == "__main__":
    unittest.main()
