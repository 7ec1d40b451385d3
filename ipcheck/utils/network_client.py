"""
IPCheck Network Client - an asynchronous HTTP client for provider APIs

Every provider call goes through this client so transport failures are
reported with one consistent set of exceptions.

Dependencies:
- aiohttp
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp

from ipcheck.core.exceptions import (
    APIError,
    NetworkError,
    DataParsingError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

class APIConfig:
    """Configuration for API client"""

    def __init__(
        self,
        timeout: float = 10,
        verify_ssl: bool = True,
        user_agent: str = "IPCheck/1.0.0",
    ):
        """
        Initialize API configuration

        Args:
            timeout: Default request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            user_agent: User agent string
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent


class AsyncNetworkClient:
    """Asynchronous HTTP client for making API requests"""

    def __init__(self, config: Optional[APIConfig] = None):
        """
        Initialize async network client

        Args:
            config: API configuration
        """
        self.config = config or APIConfig()
        self.session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def close(self):
        """Close the session if it exists"""
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        # Concurrent first calls must share one session
        async with self._session_lock:
            if self.session is None:
                self.session = aiohttp.ClientSession(
                    headers={"User-Agent": self.config.user_agent}
                )
        return self.session

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Perform an asynchronous GET request

        Args:
            url: URL to request
            params: Query parameters
            headers: Additional headers
            timeout: Request timeout override

        Returns:
            Parsed JSON response

        Raises:
            NetworkError: For connection and timeout issues
            APIError: For API errors (4xx, 5xx)
            DataParsingError: For JSON parsing errors
            RateLimitError: For rate limiting (429)
        """
        return await self._request("GET", url, params=params, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Perform an asynchronous POST request with a JSON body

        Args:
            url: URL to request
            payload: JSON-serialisable request body
            headers: Additional headers
            timeout: Request timeout override

        Returns:
            Parsed JSON response

        Raises:
            NetworkError: For connection and timeout issues
            APIError: For API errors (4xx, 5xx)
            DataParsingError: For JSON parsing errors
            RateLimitError: For rate limiting (429)
        """
        return await self._request("POST", url, payload=payload, headers=headers, timeout=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        session = await self._ensure_session()
        service = self._get_service_name(url)
        request_timeout = aiohttp.ClientTimeout(total=timeout or self.config.timeout)

        try:
            start_time = time.time()
            async with session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=headers,
                timeout=request_timeout,
                ssl=self.config.verify_ssl,
            ) as response:
                elapsed = time.time() - start_time
                logger.debug(f"Async {method} {service} completed in {elapsed:.3f}s with status {response.status}")

                # Check for rate limiting
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after:
                        try:
                            retry_after = int(retry_after)
                        except (ValueError, TypeError):
                            retry_after = None
                    raise RateLimitError(service, retry_after)

                response.raise_for_status()

                text = await response.text()
                try:
                    return json.loads(text)
                except ValueError as e:
                    raise DataParsingError(f"Failed to parse JSON response: {e}", service)

        except asyncio.TimeoutError as e:
            logger.warning(f"Async request to {service} timed out")
            raise NetworkError(f"Request timed out: {e}", service)

        except aiohttp.ClientConnectorError as e:
            logger.warning(f"Async connection error for {service}: {e}")
            raise NetworkError(f"Connection error: {e}", service)

        except aiohttp.ClientResponseError as e:
            logger.warning(f"Async HTTP error for {service}: {e.status} {e.message}")
            raise APIError(service, f"HTTP {e.status}: {e.message}", e.status)

        except aiohttp.ClientError as e:
            logger.warning(f"Async request error for {service}: {e}")
            raise NetworkError(f"Request failed: {e}", service)

    def _get_service_name(self, url: str) -> str:
        """
        Extract service name from URL

        Args:
            url: URL to analyze

        Returns:
            Service name
        """
        domain = urlparse(url).hostname or ""
        parts = domain.split('.')
        # e.g. "abuseipdb" from "api.abuseipdb.com"
        if len(parts) > 2 and parts[0] in ('www', 'api'):
            parts = parts[1:]
        return parts[0].upper() if parts and parts[0] else "API"
