"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the relay.

- Provides argparse-based CLI
- Loads configuration from CLI, environment and .env
- Wires provider, backend and pipeline stages
- Entry point for the application

============================================================
USAGE
============================================================
python -m orchestrator.cli --mackerel-api-key KEY
python -m orchestrator.cli --once --debug
python -m orchestrator.cli --resource-types load-balancer --tick-interval 60

============================================================
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from cloud_sources.discovery import ResourceDiscovery
from cloud_sources.providers.aws import AWSCloudMetricsProvider
from core.clock import ClockFactory
from core.exceptions import ConfigurationError
from metric_catalog.catalog import build_default_catalog
from metric_catalog.models import ResourceType
from metrics_backend.mackerel import MackerelBackend
from relay.fetcher import MetricFetcher
from relay.poster import MetricPoster
from relay.reconciler import HostReconciler

from .core import Scheduler, setup_logging
from .models import RelayConfig


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cloudwatch-mackerel-relay",
        description="Relay CloudWatch load balancer and database metrics to Mackerel",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION, MACKEREL_APIKEY,
  RELAY_TICK_INTERVAL, RELAY_RESOURCE_TYPES, LOG_LEVEL (a .env file is read when present)

Examples:
  %(prog)s                              # Poll every 60s until SIGINT/SIGTERM
  %(prog)s --once                       # Single pass and exit
  %(prog)s --resource-types managed-database --debug
        """
    )

    # --------------------------------------------------------
    # Credentials
    # --------------------------------------------------------
    cred_group = parser.add_argument_group("Credentials")

    cred_group.add_argument(
        "--aws-key-id",
        type=str,
        help="AWS Key ID (env: AWS_ACCESS_KEY_ID)",
    )

    cred_group.add_argument(
        "--aws-secret-key",
        type=str,
        help="AWS Secret Key (env: AWS_SECRET_ACCESS_KEY)",
    )

    cred_group.add_argument(
        "--aws-region",
        type=str,
        help="AWS region (env: AWS_REGION, default: ap-northeast-1)",
    )

    cred_group.add_argument(
        "--mackerel-api-key",
        type=str,
        help="Mackerel API Key (env: MACKEREL_APIKEY)",
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--tick-interval",
        type=int,
        metavar="SECONDS",
        help="Interval between passes in seconds (default: 60)",
    )

    execution_group.add_argument(
        "--rediscover-interval",
        type=int,
        metavar="SECONDS",
        help="Re-list resources at this interval; 0 disables (default: 0)",
    )

    execution_group.add_argument(
        "--resource-types",
        type=str,
        metavar="TYPES",
        help="Comma-separated resource types: "
             + ", ".join(rt.value for rt in ResourceType),
    )

    execution_group.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass and exit (no loop)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (default: text)",
    )

    logging_group.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Debug: verbose provider client logging",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> RelayConfig:
    """
    Build relay configuration: CLI flags override environment.

    Raises:
        ConfigurationError: If a resource type is unknown
    """
    config = RelayConfig.from_env()

    if args.aws_key_id:
        config.aws_access_key_id = args.aws_key_id
    if args.aws_secret_key:
        config.aws_secret_access_key = args.aws_secret_key
    if args.aws_region:
        config.aws_region = args.aws_region
    if args.mackerel_api_key:
        config.mackerel_api_key = args.mackerel_api_key
    if args.tick_interval is not None:
        config.tick_interval_seconds = args.tick_interval
    if args.rediscover_interval is not None:
        config.rediscovery_interval_seconds = args.rediscover_interval
    if args.resource_types:
        try:
            config.resource_types = [
                ResourceType(part.strip())
                for part in args.resource_types.split(",")
                if part.strip()
            ]
        except ValueError as e:
            raise ConfigurationError(
                message=f"Unknown resource type: {e}",
                config_key="resource_types",
            )
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    if args.debug:
        config.debug = True
    if args.once:
        config.single_pass = True

    return config


def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments that can be checked before config assembly.

    Returns:
        List of validation errors
    """
    errors = []

    if args.tick_interval is not None and args.tick_interval < 1:
        errors.append("--tick-interval must be at least 1 second")

    if args.rediscover_interval is not None and args.rediscover_interval < 0:
        errors.append("--rediscover-interval must not be negative")

    return errors


# ============================================================
# WIRING
# ============================================================

def build_scheduler(
    config: RelayConfig,
    provider: AWSCloudMetricsProvider,
    backend: MackerelBackend,
) -> Scheduler:
    """Wire the pipeline stages into a scheduler."""
    clock = ClockFactory.get_clock()
    catalog = build_default_catalog()
    return Scheduler(
        catalog=catalog,
        discovery=ResourceDiscovery(provider),
        reconciler=HostReconciler(backend),
        fetcher=MetricFetcher(
            provider,
            clock=clock,
            window_seconds=config.query_window_seconds,
            period_seconds=config.query_period_seconds,
        ),
        poster=MetricPoster(backend),
        backend=backend,
        resource_types=config.resource_types,
        tick_interval_seconds=config.tick_interval_seconds,
        rediscovery_interval_seconds=config.rediscovery_interval_seconds,
        clock=clock,
    )


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(config: RelayConfig) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    logger = logging.getLogger("orchestrator")

    provider = AWSCloudMetricsProvider(config.aws_config())
    backend = MackerelBackend(
        api_key=config.mackerel_api_key,
        base_url=config.mackerel_base_url,
        timeout=config.request_timeout_seconds,
    )

    try:
        scheduler = build_scheduler(config, provider, backend)
        if config.single_pass:
            await scheduler.start()
            await scheduler.run_pass()
            scheduler.stop()
        else:
            await scheduler.run_forever(handle_signals=True)
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await backend.close()
        await provider.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if not errors:
        try:
            config = build_config(args)
        except ConfigurationError as e:
            errors.append(e.message)
        except ValueError as e:
            errors.append(f"Invalid environment value: {e}")
        else:
            errors.extend(config.validate())

    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(level=config.log_level, log_format=config.log_format, debug=config.debug)
    print_banner(config)

    try:
        return asyncio.run(async_main(config))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 0


def print_banner(config: RelayConfig) -> None:
    """Log startup banner."""
    logger = logging.getLogger("orchestrator")
    logger.info("=" * 60)
    logger.info("  CLOUDWATCH -> MACKEREL RELAY")
    logger.info(f"  Region:     {config.aws_region}")
    logger.info(f"  Types:      {', '.join(rt.value for rt in config.resource_types)}")
    logger.info(f"  Interval:   {config.tick_interval_seconds}s")
    logger.info(f"  Single:     {config.single_pass}")
    logger.info("=" * 60)


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
