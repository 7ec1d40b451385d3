"""
Unit tests for merging and classification
"""

import itertools
import unittest

from ipcheck.core.models import ProviderResult
from ipcheck.services.analysis import AnalysisFailure, AnalysisResult
from ipcheck.services.merge import (
    classify,
    detect_dual_isp,
    determine_nativity,
    merge,
    normalize_ip_type,
)

ORDER = ["ipapi", "abuseipdb", "ipqs"]

class TestMerge(unittest.TestCase):
    """Test merge function"""

    def test_later_provider_wins(self):
        """Test fields from later-declared providers overwrite earlier ones"""
        results = [
            ProviderResult("ipqs", data={"isp": "IPQS ISP", "fraudScore": 10}),
            ProviderResult("ipapi", data={"isp": "ip-api ISP", "city": "Paris"}),
        ]

        fields, sources, errors = merge(results, ORDER.index)

        self.assertEqual(fields["isp"], "IPQS ISP")
        self.assertEqual(fields["city"], "Paris")
        self.assertEqual(sources, ["ipapi", "ipqs"])
        self.assertEqual(errors, [])

    def test_result_order_never_changes_output(self):
        """Test every completion order produces the same merge"""
        results = [
            ProviderResult("ipapi", data={"isp": "A", "countryCode": "FR"}),
            ProviderResult("abuseipdb", error="HTTP 401"),
            ProviderResult("ipqs", data={"isp": "C", "fraudScore": 5}),
        ]

        expected = merge(results, ORDER.index)
        for permutation in itertools.permutations(results):
            self.assertEqual(merge(list(permutation), ORDER.index), expected)

    def test_errors_are_collected(self):
        """Test failed providers are reported and contribute nothing"""
        results = [
            ProviderResult("ipapi", error="timed out after 5s"),
            ProviderResult("ipqs", data={"fraudScore": 0}),
        ]

        fields, sources, errors = merge(results, ORDER.index)

        self.assertEqual(fields, {"fraudScore": 0})
        self.assertEqual(sources, ["ipqs"])
        self.assertEqual(errors, [{"source": "ipapi", "error": "timed out after 5s"}])

    def test_empty(self):
        """Test merging nothing"""
        self.assertEqual(merge([], ORDER.index), ({}, [], []))

class TestDerivedFields(unittest.TestCase):
    """Test dual ISP and nativity detection"""

    def test_dual_isp(self):
        """Test dual ISP needs two different names"""
        self.assertFalse(detect_dual_isp({"isp": "Comcast", "org": "Comcast"}))
        self.assertTrue(detect_dual_isp({"isp": "Comcast", "org": "Amazon"}))
        self.assertFalse(detect_dual_isp({"isp": "Comcast"}))
        self.assertFalse(detect_dual_isp({"org": "Amazon"}))
        self.assertFalse(detect_dual_isp({}))

    def test_native_when_codes_match(self):
        """Test matching countries mean native"""
        nativity = determine_nativity({"countryCode": "DE", "asnCountryCode": "de"})

        self.assertTrue(nativity.is_native)
        self.assertIn("matches", nativity.reason)

    def test_broadcast_when_codes_differ(self):
        """Test differing countries mean broadcast, citing both codes"""
        nativity = determine_nativity({"countryCode": "HK", "asnCountryCode": "US"})

        self.assertFalse(nativity.is_native)
        self.assertIn("HK", nativity.reason)
        self.assertIn("US", nativity.reason)

    def test_native_by_default_without_both_codes(self):
        """Test one code alone falls back to native with an explanation"""
        nativity = determine_nativity({"countryCode": "HK"})

        self.assertTrue(nativity.is_native)
        self.assertIn("Insufficient data", nativity.reason)

class TestClassification(unittest.TestCase):
    """Test the classification fallback chain"""

    def test_hosting_flag(self):
        self.assertEqual(classify({"isHosting": True}).label, "Data Center")

    def test_mobile_flag(self):
        self.assertEqual(classify({"isMobile": True}).label, "Mobile")

    def test_hosting_beats_mobile(self):
        self.assertEqual(classify({"isHosting": True, "isMobile": True}).label, "Data Center")

    def test_default_residential(self):
        self.assertEqual(classify({}).label, "Residential")
        self.assertEqual(classify({"isHosting": False, "isMobile": False}).label, "Residential")

    def test_usage_type_beats_flags(self):
        """Test usage type is consulted before the flags"""
        classification = classify({"usageType": "Fixed Line ISP", "isHosting": True})
        self.assertEqual(classification.label, "Residential")
        self.assertIn("usage type", classification.reasoning)

    def test_connection_type_beats_usage_type(self):
        """Test connection type is consulted before usage type"""
        classification = classify({"connection_type": "Corporate", "usageType": "Fixed Line ISP"})
        self.assertEqual(classification.label, "Commercial")

    def test_premium_placeholder_is_skipped(self):
        """Test a free-tier placeholder falls through to usage type"""
        classification = classify({
            "connection_type": "Premium required.",
            "usageType": "Data Center/Web Hosting/Transit",
        })
        self.assertEqual(classification.label, "Data Center")

    def test_analysis_label_wins(self):
        """Test a usable analysis label beats every other source"""
        classification = classify(
            {"connection_type": "Residential", "isHosting": True},
            AnalysisResult("Mobile", "Carrier-grade NAT range of a cellular operator"),
        )
        self.assertEqual(classification.label, "Mobile")
        self.assertEqual(classification.reasoning, "Carrier-grade NAT range of a cellular operator")

    def test_unknown_analysis_label_falls_back(self):
        """Test an "unknown" analysis label is ignored"""
        classification = classify({"isMobile": True}, AnalysisResult("Unknown", "not sure"))
        self.assertEqual(classification.label, "Mobile")

    def test_analysis_failure_falls_back_with_reason(self):
        """Test an analysis failure is noted in the rationale"""
        classification = classify({"isHosting": True}, AnalysisFailure("Request timed out"))

        self.assertEqual(classification.label, "Data Center")
        self.assertIn("Request timed out", classification.reasoning)

    def test_normalize_ip_type(self):
        """Test labels map onto display buckets"""
        cases = {
            "Fixed Line ISP": "Residential",
            "residential": "Residential",
            "Mobile ISP": "Mobile",
            "Cellular": "Mobile",
            "Data Center/Web Hosting/Transit": "Data Center",
            "Hosting": "Data Center",
            "Corporate": "Commercial",
            "Business": "Commercial",
            "University/College/School": "Education",
            "Content Delivery Network": "Content Delivery Network",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_ip_type(raw), expected)

if __name__ == "__main__":
    unittest.main()
