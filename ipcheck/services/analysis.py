"""
Optional IP type analysis through an OpenAI-compatible chat endpoint
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ipcheck.utils.network_client import AsyncNetworkClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You classify IP addresses. Given JSON data gathered from IP intelligence "
    "providers, answer with a JSON object only: "
    '{"type": "<Residential|Mobile|Data Center|Commercial|Education|Unknown>", '
    '"reasoning": "<one or two sentences>"}'
)

# Fields worth sending; the rest is noise for the model
ANALYSIS_FIELDS = (
    "country", "countryCode", "city", "isp", "org", "asn", "asnName", "asnOrg",
    "isHosting", "isMobile", "isProxy", "isVpn", "isTor", "usageType",
    "connection_type", "fraudScore", "abuseScore",
)

FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

@dataclass
class AnalysisResult:
    """Type label proposed by the analysis service"""
    label: str
    reasoning: Optional[str] = None

@dataclass
class AnalysisFailure:
    """Why the analysis produced nothing usable"""
    reason: str

AnalysisOutcome = Union[AnalysisResult, AnalysisFailure]

def _extract_object(content: str) -> Optional[Dict[str, Any]]:
    """Find the JSON object in a reply that may wrap it in fences or prose"""
    candidates = [content.strip()]
    fenced = FENCE_PATTERN.search(content)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = content.find("{"), content.rfind("}")
    if 0 <= start < end:
        candidates.append(content[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None

def parse_analysis_response(payload: Any) -> AnalysisOutcome:
    """
    Turn a chat-completions response into a result or a failure

    Never raises: anything malformed becomes an AnalysisFailure.

    Args:
        payload: Decoded JSON response body

    Returns:
        AnalysisResult or AnalysisFailure
    """
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return AnalysisFailure("response has no message content")

    if not isinstance(content, str) or not content.strip():
        return AnalysisFailure("response content is empty")

    parsed = _extract_object(content)
    if parsed is None:
        return AnalysisFailure("response content is not a JSON object")

    label = parsed.get("type")
    if not isinstance(label, str) or not label.strip():
        return AnalysisFailure("response has no type label")

    reasoning = parsed.get("reasoning")
    if reasoning is not None and not isinstance(reasoning, str):
        reasoning = str(reasoning)

    return AnalysisResult(label.strip(), reasoning)

class AnalysisClient:
    """Client for the optional analysis service"""

    def __init__(
        self,
        client: AsyncNetworkClient,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 15.0,
    ):
        """
        Initialize the analysis client

        Args:
            client: Shared async HTTP client
            base_url: API base URL, e.g. https://api.openai.com/v1
            api_key: Bearer token
            model: Model name
            timeout: Request timeout in seconds
        """
        self.client = client
        self.url = base_url.rstrip("/") + "/chat/completions"
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def build_payload(self, ip: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        summary = {k: fields[k] for k in ANALYSIS_FIELDS if k in fields}
        return {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps({"ip": ip, **summary})},
            ],
        }

    async def analyze(self, ip: str, fields: Dict[str, Any]) -> AnalysisOutcome:
        """
        Ask the service for a type label

        Args:
            ip: Address being classified
            fields: Merged provider fields

        Returns:
            AnalysisResult, or AnalysisFailure on any error
        """
        try:
            payload = await self.client.post(
                self.url,
                self.build_payload(ip, fields),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"Analysis request for {ip} failed: {e}")
            return AnalysisFailure(str(e) or type(e).__name__)

        outcome = parse_analysis_response(payload)
        if isinstance(outcome, AnalysisFailure):
            logger.warning(f"Analysis response for {ip} unusable: {outcome.reason}")
        return outcome
