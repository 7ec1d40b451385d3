"""
Built-in provider table

Each transform flattens one upstream JSON shape into canonical fields,
omits fields the upstream did not report, and raises ProviderError when
the body carries an application-level failure.
"""

from typing import Any, Dict, List

from ipcheck.core.config import Config
from ipcheck.core.exceptions import DataParsingError, ProviderError
from ipcheck.core.providers import ProviderDescriptor, ProviderRegistry

IPAPI_FIELDS = (
    "status,message,country,countryCode,region,regionName,city,lat,lon,"
    "timezone,isp,org,as,mobile,proxy,hosting,query"
)

def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop fields the provider left empty"""
    return {k: v for k, v in values.items() if v is not None and v != ""}

def _require_mapping(name: str, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise DataParsingError(f"{name} returned a non-object body", name)
    return data

def transform_ipapi(data: Any) -> Dict[str, Any]:
    data = _require_mapping("ipapi", data)
    if data.get("status") == "fail":
        raise ProviderError("ipapi", data.get("message") or "lookup failed")

    return _compact({
        "country": data.get("country"),
        "countryCode": data.get("countryCode"),
        "region": data.get("regionName"),
        "city": data.get("city"),
        "lat": data.get("lat"),
        "lon": data.get("lon"),
        "timezone": data.get("timezone"),
        "isp": data.get("isp"),
        "org": data.get("org"),
        "asn": data.get("as"),
        "isMobile": data.get("mobile"),
        "isProxy": data.get("proxy"),
        "isHosting": data.get("hosting"),
    })

def transform_ipdata(data: Any) -> Dict[str, Any]:
    data = _require_mapping("ipdata", data)
    if "ip" not in data and data.get("message"):
        raise ProviderError("ipdata", data["message"])

    asn = data.get("asn") or {}
    threat = data.get("threat") or {}
    time_zone = data.get("time_zone") or {}

    is_hosting = None
    if asn.get("type") or "is_datacenter" in threat:
        is_hosting = asn.get("type") == "hosting" or bool(threat.get("is_datacenter"))

    return _compact({
        "country": data.get("country_name"),
        "countryCode": data.get("country_code"),
        "region": data.get("region"),
        "city": data.get("city"),
        "lat": data.get("latitude"),
        "lon": data.get("longitude"),
        "timezone": time_zone.get("name"),
        "asn": asn.get("asn"),
        "org": asn.get("name"),
        "isHosting": is_hosting,
        "isTor": threat.get("is_tor"),
        "isProxy": threat.get("is_proxy"),
        "isVpn": threat.get("is_vpn"),
    })

def transform_ip2location(data: Any) -> Dict[str, Any]:
    data = _require_mapping("ip2location", data)
    error = data.get("error")
    if error:
        message = error.get("error_message") if isinstance(error, dict) else str(error)
        raise ProviderError("ip2location", message or "lookup failed")

    return _compact({
        "country": data.get("country_name"),
        "countryCode": data.get("country_code"),
        "region": data.get("region_name"),
        "city": data.get("city_name"),
        "lat": data.get("latitude"),
        "lon": data.get("longitude"),
        "timezone": data.get("time_zone"),
        "asn": data.get("asn"),
        "org": data.get("as"),
        "isProxy": data.get("is_proxy"),
    })

def transform_abuseipdb(data: Any) -> Dict[str, Any]:
    data = _require_mapping("abuseipdb", data)
    errors = data.get("errors")
    if errors:
        first = errors[0] if isinstance(errors, list) else errors
        detail = first.get("detail") if isinstance(first, dict) else str(first)
        raise ProviderError("abuseipdb", detail or "lookup failed")

    report = data.get("data")
    if not isinstance(report, dict):
        raise DataParsingError("abuseipdb response has no data object", "abuseipdb")

    return _compact({
        "abuseScore": report.get("abuseConfidenceScore"),
        "usageType": report.get("usageType"),
        "totalReports": report.get("totalReports"),
        "domain": report.get("domain"),
        "isTor": report.get("isTor"),
    })

def transform_ipqs(data: Any) -> Dict[str, Any]:
    data = _require_mapping("ipqs", data)
    if not data.get("success"):
        raise ProviderError("ipqs", data.get("message") or "lookup failed")

    return _compact({
        "fraudScore": data.get("fraud_score"),
        "isVpn": data.get("vpn"),
        "isProxy": data.get("proxy"),
        "isTor": data.get("tor"),
        "isMobile": data.get("mobile"),
        "countryCode": data.get("country_code"),
        "region": data.get("region"),
        "city": data.get("city"),
        "isp": data.get("ISP"),
        "org": data.get("organization"),
        "asn": data.get("ASN"),
        "connection_type": data.get("connection_type"),
        "recentAbuse": data.get("recent_abuse"),
        "isBot": data.get("bot_status"),
    })

def transform_cloudflare(data: Any) -> Dict[str, Any]:
    data = _require_mapping("cloudflare", data)
    if not data.get("success"):
        messages = [e.get("message", "") for e in data.get("errors") or [] if isinstance(e, dict)]
        raise ProviderError("cloudflare", "; ".join(m for m in messages if m) or "lookup failed")

    asn = (data.get("result") or {}).get("asn")
    if not isinstance(asn, dict):
        raise DataParsingError("cloudflare response has no ASN entity", "cloudflare")

    return _compact({
        "asnName": asn.get("name"),
        "asnOrg": asn.get("orgName"),
        "asnCountryCode": asn.get("country"),
        "asnCountry": asn.get("countryName"),
    })

def build_default_providers(config: Config) -> ProviderRegistry:
    """
    Build the provider table from configured credentials

    Args:
        config: Configuration object

    Returns:
        ProviderRegistry in accuracy-ranking order
    """
    descriptors: List[ProviderDescriptor] = [
        ProviderDescriptor(
            name="ipapi",
            endpoint=lambda ctx: (f"http://ip-api.com/json/{ctx['ip']}", {"fields": IPAPI_FIELDS}),
            transform=transform_ipapi,
        ),
        ProviderDescriptor(
            name="ipdata",
            enabled=bool(config.ipdata_key),
            endpoint=lambda ctx: (f"https://api.ipdata.co/{ctx['ip']}", {"api-key": config.ipdata_key}),
            transform=transform_ipdata,
        ),
        ProviderDescriptor(
            name="ip2location",
            enabled=bool(config.ip2location_key),
            endpoint=lambda ctx: (
                "https://api.ip2location.io/",
                {"key": config.ip2location_key, "ip": ctx["ip"], "format": "json"},
            ),
            transform=transform_ip2location,
        ),
        ProviderDescriptor(
            name="abuseipdb",
            enabled=bool(config.abuseipdb_key),
            endpoint=lambda ctx: (
                "https://api.abuseipdb.com/api/v2/check",
                {"ipAddress": ctx["ip"], "maxAgeInDays": 90},
            ),
            headers={"Key": config.abuseipdb_key or "", "Accept": "application/json"},
            transform=transform_abuseipdb,
        ),
        ProviderDescriptor(
            name="ipqs",
            enabled=bool(config.ipqs_key),
            endpoint=lambda ctx: (
                f"https://www.ipqualityscore.com/api/json/ip/{config.ipqs_key}/{ctx['ip']}",
                None,
            ),
            transform=transform_ipqs,
        ),
        ProviderDescriptor(
            name="cloudflare",
            enabled=bool(config.cloudflare_token),
            requires="asn",
            endpoint=lambda ctx: (
                f"https://api.cloudflare.com/client/v4/radar/entities/asns/{ctx['asn']}",
                None,
            ),
            headers={"Authorization": f"Bearer {config.cloudflare_token or ''}"},
            transform=transform_cloudflare,
        ),
    ]
    return ProviderRegistry(descriptors)

def describe_providers(registry: ProviderRegistry) -> Dict[str, bool]:
    """Map provider name to whether it is enabled"""
    return {d.name: d.enabled for d in registry}
