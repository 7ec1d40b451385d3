"""
Merging provider results and deriving classifications
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ipcheck.core.models import Classification, Nativity, ProviderResult
from ipcheck.services.analysis import AnalysisFailure, AnalysisResult

# Substring -> display bucket, checked in this order
IP_TYPE_BUCKETS = (
    (("residential", "fixed line", "fixed-line"), "Residential"),
    (("mobile", "cellular"), "Mobile"),
    (("data center", "datacenter", "data-center", "hosting", "transit"), "Data Center"),
    (("corporate", "commercial", "business"), "Commercial"),
    (("education", "university", "school"), "Education"),
)

# Values a free-tier provider sends in place of real data
PLACEHOLDER_MARKERS = ("premium", "upgrade", "unavailable")

def merge(
    results: Sequence[ProviderResult],
    rank: Callable[[str], int],
) -> Tuple[Dict[str, Any], List[str], List[Dict[str, str]]]:
    """
    Fold provider results into one field set

    Results are applied in declaration order, not completion order: a
    provider declared later overwrites fields reported by earlier ones.

    Args:
        results: Provider results in any order
        rank: Declaration index of a provider name, e.g. ProviderRegistry.rank

    Returns:
        Tuple of (fields, contributing sources, errors)
    """
    ranked = sorted(results, key=lambda r: rank(r.source))

    fields: Dict[str, Any] = {}
    sources: List[str] = []
    errors: List[Dict[str, str]] = []
    for result in ranked:
        if result.ok:
            fields.update(result.data)
            sources.append(result.source)
        else:
            errors.append({"source": result.source, "error": result.error or "unknown error"})

    return fields, sources, errors

def detect_dual_isp(fields: Dict[str, Any]) -> bool:
    """True when both ISP and organization are known and differ"""
    isp = fields.get("isp")
    org = fields.get("org")
    if not isp or not org:
        return False
    return str(isp) != str(org)

def determine_nativity(fields: Dict[str, Any]) -> Nativity:
    """
    Compare the geolocated country with the ASN's registration country

    With only one of the two codes the address is assumed native.
    """
    geo_code = fields.get("countryCode")
    asn_code = fields.get("asnCountryCode")

    if geo_code and asn_code:
        if str(geo_code).upper() == str(asn_code).upper():
            return Nativity(True, f"Geolocation country {geo_code} matches ASN registration country {asn_code}")
        return Nativity(
            False,
            f"Broadcast IP: geolocation country {geo_code} differs from ASN registration country {asn_code}",
        )

    return Nativity(True, "Insufficient data to compare geolocation and ASN registration countries; assuming native")

def normalize_ip_type(label: str) -> str:
    """Map a provider's type label onto a display bucket"""
    lowered = label.lower()
    for needles, bucket in IP_TYPE_BUCKETS:
        if any(needle in lowered for needle in needles):
            return bucket
    return label

def is_placeholder(value: Any) -> bool:
    lowered = str(value).lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)

def classify(
    fields: Dict[str, Any],
    analysis: Optional[Union[AnalysisResult, AnalysisFailure]] = None,
) -> Classification:
    """
    Pick the IP type from the first source that has one

    Order: analysis service, connection_type, usageType, hosting flag,
    mobile flag, then Residential.

    Args:
        fields: Merged provider fields
        analysis: Outcome of the optional analysis call, None if not configured

    Returns:
        Classification with a normalized label and its rationale
    """
    failure_note = None
    if isinstance(analysis, AnalysisResult):
        label = (analysis.label or "").strip()
        if label and label.lower() != "unknown":
            return Classification(normalize_ip_type(label), analysis.reasoning)
        failure_note = "Analysis service returned no usable type"
    elif isinstance(analysis, AnalysisFailure):
        failure_note = f"Analysis unavailable: {analysis.reason}"

    connection_type = fields.get("connection_type")
    usage_type = fields.get("usageType")

    if connection_type and not is_placeholder(connection_type):
        label, basis = str(connection_type), f"connection type reported as {connection_type}"
    elif usage_type:
        label, basis = str(usage_type), f"usage type reported as {usage_type}"
    elif fields.get("isHosting") is True:
        label, basis = "Data Center", "hosting flag set"
    elif fields.get("isMobile") is True:
        label, basis = "Mobile", "mobile flag set"
    else:
        label, basis = "Residential", "no hosting or mobile indicators"

    reasoning = f"Heuristic: {basis}"
    if failure_note:
        reasoning = f"{failure_note}. {reasoning}"
    return Classification(normalize_ip_type(label), reasoning)
