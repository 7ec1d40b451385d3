#!/usr/bin/env python3
"""
IPCheck - what do we know about this IP address?

Queries several reputation and geolocation providers concurrently, merges
their answers into one record, classifies the address, and caches the
result in a shared store so repeated lookups stay cheap.
"""

import argparse
import logging
import sys
from pathlib import Path

from ipcheck.core.config import Config
from ipcheck.core.exceptions import ConfigurationError
from ipcheck.interfaces.cli import CLI

def main():
    """Main entry point for IPCheck"""
    parser = argparse.ArgumentParser(description="IPCheck - IP Intelligence Aggregator", add_help=False)
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", type=str, help="Path to configuration file")

    # Parse just the known args for initial setup
    args, remaining = parser.parse_known_args()

    # Setup configuration
    config_path = Path(args.config) if args.config else None
    try:
        config = Config(config_path, debug=args.debug)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    # Setup logging
    if config.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[
                logging.FileHandler(config.log_file),
                logging.StreamHandler()
            ]
        )
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(asctime)s - %(levelname)s - %(message)s"
        )

    cli = CLI(config)
    return cli.run(remaining)

if __name__ == "__main__":
    sys.exit(main())
