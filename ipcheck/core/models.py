"""
Data models for IPCheck
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

# Output keys that are not provider fields
RECORD_KEYS = (
    "ip", "sources", "errors", "ipType", "aiReasoning", "isNative",
    "nativeReason", "isDualIsp", "timestamp", "fromCache",
)

@dataclass
class ProviderResult:
    """Outcome of one provider call: either data or an error message"""
    source: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None

@dataclass
class Classification:
    """IP type label with an optional rationale"""
    label: str
    reasoning: Optional[str] = None

@dataclass
class Nativity:
    """Whether the address is announced from its geolocated country"""
    is_native: bool
    reason: str

@dataclass
class AggregateRecord:
    """Merged view of every provider that answered for one IP"""
    ip: str
    fields: Dict[str, Any] = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)
    ip_type: str = "Residential"
    ai_reasoning: Optional[str] = None
    is_native: bool = True
    native_reason: str = ""
    is_dual_isp: bool = False
    timestamp: str = ""
    from_cache: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """
        Flatten the record into the output shape

        Provider fields sit at the top level next to the derived keys.
        """
        result = {"ip": self.ip}
        result.update(self.fields)
        result.update({
            "sources": list(self.sources),
            "errors": [dict(e) for e in self.errors],
            "ipType": self.ip_type,
            "aiReasoning": self.ai_reasoning,
            "isNative": self.is_native,
            "nativeReason": self.native_reason,
            "isDualIsp": self.is_dual_isp,
            "timestamp": self.timestamp,
            "fromCache": self.from_cache,
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateRecord":
        """
        Rebuild a record from its flat output shape

        Raises:
            ValueError: If required keys are missing or have the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("record must be a mapping")
        for key in ("ip", "sources", "timestamp"):
            if key not in data:
                raise ValueError(f"record is missing '{key}'")
        if not isinstance(data["sources"], list):
            raise ValueError("'sources' must be a list")

        errors = data.get("errors") or []
        if not isinstance(errors, list):
            raise ValueError("'errors' must be a list")

        return cls(
            ip=data["ip"],
            fields={k: v for k, v in data.items() if k not in RECORD_KEYS},
            sources=list(data["sources"]),
            errors=[dict(e) for e in errors],
            ip_type=data.get("ipType", "Residential"),
            ai_reasoning=data.get("aiReasoning"),
            is_native=bool(data.get("isNative", True)),
            native_reason=data.get("nativeReason", ""),
            is_dual_isp=bool(data.get("isDualIsp", False)),
            timestamp=data["timestamp"],
            from_cache=bool(data.get("fromCache", False)),
        )
