"""
Command-line interface for IPCheck
"""

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, List

from colorama import Fore, Style, init as colorama_init

from ipcheck.core.config import Config
from ipcheck.core.exceptions import IPCheckError, ConfigurationError, ValidationError
from ipcheck.core.models import AggregateRecord
from ipcheck.core.providers.builtin import build_default_providers, describe_providers
from ipcheck.services.analysis import AnalysisClient
from ipcheck.services.coordinator import CacheAsideCoordinator
from ipcheck.services.fetch import FetchExecutor
from ipcheck.services.ip_check import IPCheckService
from ipcheck.utils.cache import create_cache_store
from ipcheck.utils.network import NetworkUtils
from ipcheck.utils.network_client import APIConfig, AsyncNetworkClient
from ipcheck.utils.validation import Validator

# Initialize colorama for cross-platform color support
colorama_init(autoreset=True)

# Console color definitions
class Colors:
    GREEN = Fore.GREEN
    YELLOW = Fore.YELLOW
    WHITE = Fore.WHITE
    BLUE = Fore.CYAN
    RED = Fore.RED
    DIM = Style.DIM
    RESET = Style.RESET_ALL

class CLI:
    """Command-line interface for IPCheck"""

    def __init__(self, config: Config):
        """
        Initialize CLI

        Args:
            config: Configuration object
        """
        self.config = config
        self.registry = build_default_providers(config)

    def run(self, args: List[str]) -> int:
        """
        Run CLI with arguments

        Args:
            args: Command-line arguments

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parser = self._create_parser()
        parsed_args = parser.parse_args(args)

        try:
            if parsed_args.version:
                from ipcheck import __version__
                print(f"IPCheck version {__version__}")
                return 0

            self._update_config_from_args(parsed_args)

            if parsed_args.providers:
                return self._run_providers()

            if not parsed_args.target:
                parser.print_help()
                return 1

            return asyncio.run(self._run_lookups(parsed_args.target, not parsed_args.no_cache))

        except ConfigurationError as e:
            print(f"Configuration error: {e}")
            return 1
        except IPCheckError as e:
            print(f"Error: {e}")
            return 1

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser

        Returns:
            Configured argument parser
        """
        parser = argparse.ArgumentParser(
            prog="ipcheck",
            description="IP reputation / geolocation / type lookup across several providers"
        )

        parser.add_argument("-m", "--monochrome", action="store_true", help="Disable colored output")
        parser.add_argument("-j", "--json", action="store_true", help="Set output to compact JSON mode (ideal for machine parsing)")
        parser.add_argument("-J", "--json-pretty", action="store_true", help="Set output to pretty-printed JSON mode")
        parser.add_argument("-n", "--no-cache", action="store_true", help="Bypass the shared cache and query providers directly")
        parser.add_argument("--providers", action="store_true", help="Show which providers and backends are configured")
        parser.add_argument("--version", action="store_true", help="Show version information")

        parser.add_argument("target", nargs="*", help="Public IPv4/IPv6 address(es) to look up")

        return parser

    def _update_config_from_args(self, args: argparse.Namespace):
        """
        Update configuration from command-line arguments

        Args:
            args: Parsed command-line arguments
        """
        self.config.monochrome = self.config.monochrome or args.monochrome
        self.config.json_pretty = self.config.json_pretty or args.json_pretty
        self.config.json_output = self.config.json_output or args.json or args.json_pretty

    async def _run_lookups(self, targets: List[str], use_cache: bool) -> int:
        """
        Validate and look up each target

        Args:
            targets: IP addresses from the command line
            use_cache: Go through the cache-aside coordinator

        Returns:
            Exit code (0 if every lookup succeeded)
        """
        exit_code = 0
        ips = []
        for target in targets:
            try:
                Validator.validate_public_ip(target)
                ips.append(NetworkUtils.normalize_ip(target))
            except ValidationError as e:
                self._print_error(str(e))
                exit_code = 1

        if not ips:
            return exit_code

        client = AsyncNetworkClient(APIConfig(
            timeout=self.config.phase2_timeout,
            user_agent=self.config.user_agent,
        ))
        store = create_cache_store(self.config.cache_backend, self.config.redis_dsn) if use_cache else None

        try:
            analysis = None
            if self.config.analysis_enabled:
                analysis = AnalysisClient(
                    client,
                    self.config.llm_base_url,
                    self.config.llm_api_key,
                    self.config.llm_model,
                    timeout=self.config.analysis_timeout,
                )
            service = IPCheckService(self.config, self.registry, FetchExecutor(client), analysis)

            lookup = service.lookup_ip
            if store is not None:
                lookup = CacheAsideCoordinator(
                    store,
                    service.lookup_ip,
                    ttl=self.config.cache_ttl,
                    lock_ttl=self.config.lock_ttl,
                    retry_interval=self.config.lock_retry_interval,
                    wait_timeout=self.config.lock_wait_timeout,
                    key_prefix=self.config.cache_key_prefix,
                ).resolve

            results = await asyncio.gather(*(lookup(ip) for ip in ips), return_exceptions=True)
        finally:
            await client.close()
            if store is not None:
                await store.close()

        records = []
        for ip, result in zip(ips, results):
            if isinstance(result, IPCheckError):
                self._print_error(f"Lookup for {ip} failed: {result}")
                exit_code = 1
            elif isinstance(result, BaseException):
                logging.error(f"Unexpected error looking up {ip}: {result}", exc_info=result)
                self._print_error(f"Lookup for {ip} failed unexpectedly: {result}")
                exit_code = 1
            else:
                records.append(result)

        if self.config.json_output:
            data = [r.to_dict() for r in records]
            self._output_json(data[0] if len(data) == 1 else data)
        else:
            for record in records:
                self._output_record(record)

        return exit_code

    def _run_providers(self) -> int:
        """Report configured providers, analysis service and cache backend"""
        status: Dict[str, Any] = {
            "providers": describe_providers(self.registry),
            "analysis": self.config.analysis_enabled,
            "cache": self.config.cache_backend,
        }
        if self.config.cache_backend == "redis":
            status["redis"] = self.config.redis_dsn

        if self.config.json_output:
            self._output_json(status)
            return 0

        print("\nConfigured providers:\n")
        for name, enabled in status["providers"].items():
            state = self._c(Colors.GREEN, "enabled") if enabled else self._c(Colors.RED, "disabled")
            print(f"  {name:<12} {state}")
        analysis_state = self._c(Colors.GREEN, "enabled") if status["analysis"] else self._c(Colors.RED, "disabled")
        print(f"\nAnalysis service: {analysis_state}")
        print(f"Cache backend: {self._c(Colors.BLUE, status.get('redis', status['cache']))}")
        return 0

    def _c(self, color: str, text: Any) -> str:
        if self.config.monochrome:
            return str(text)
        return f"{color}{text}{Colors.RESET}"

    def _print_error(self, message: str):
        print(self._c(Colors.RED, message))

    def _output_json(self, data: Any):
        """
        Output data as JSON

        Args:
            data: Data to output as JSON
        """
        if self.config.json_pretty:
            print(json.dumps(data, indent=2))
        else:
            print(json.dumps(data))

    def _output_record(self, record: AggregateRecord):
        """
        Output an aggregated record

        Args:
            record: AggregateRecord to output
        """
        fields = record.fields
        cached = self._c(Colors.DIM, " (cached)") if record.from_cache else ""
        print(f"\nIP Information for {record.ip}{cached}:\n")

        location = ", ".join(str(fields[k]) for k in ("city", "region", "country") if fields.get(k))
        print(f"Location: {self._c(Colors.WHITE, location or 'N/A')} {self._c(Colors.DIM, fields.get('countryCode', ''))}")
        print(f"ISP: {self._c(Colors.GREEN, fields.get('isp', 'N/A'))}")
        print(f"Organization: {self._c(Colors.GREEN, fields.get('org', 'N/A'))}")
        print(f"ASN: {self._c(Colors.RED, fields.get('asn', 'N/A'))}")

        print(f"IP Type: {self._c(Colors.YELLOW, record.ip_type)}")
        if record.ai_reasoning:
            print(f"  {self._c(Colors.DIM, record.ai_reasoning)}")

        native = self._c(Colors.GREEN, "Native") if record.is_native else self._c(Colors.YELLOW, "Broadcast")
        print(f"Nativity: {native} {self._c(Colors.DIM, '(' + record.native_reason + ')')}")
        dual = self._c(Colors.YELLOW, "Yes") if record.is_dual_isp else self._c(Colors.GREEN, "No")
        print(f"Dual ISP: {dual}")

        flags = [name for key, name in (
            ("isVpn", "VPN"), ("isProxy", "Proxy"), ("isTor", "Tor"),
            ("isHosting", "Hosting"), ("isMobile", "Mobile"),
        ) if fields.get(key) is True]
        if flags:
            print(f"Flags: {self._c(Colors.YELLOW, ' '.join(flags))}")

        if "fraudScore" in fields:
            score = fields["fraudScore"]
            color = Colors.GREEN if score < 40 else Colors.YELLOW if score < 85 else Colors.RED
            print(f"Fraud Score: {self._c(color, score)}")
        if "abuseScore" in fields:
            score = fields["abuseScore"]
            color = Colors.GREEN if score < 25 else Colors.YELLOW if score < 75 else Colors.RED
            print(f"Abuse Score: {self._c(color, score)}")

        print(f"Sources: {self._c(Colors.BLUE, ', '.join(record.sources))}")
        for error in record.errors:
            print(f"  {self._c(Colors.RED, error['source'])}: {error['error']}")
