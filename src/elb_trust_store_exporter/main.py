"""
Application entry point: wires dependencies and starts the HTTP server.

Composition root: creates concrete adapters, injects them into the
scrape cycle, and hands the cycle to the FastAPI app (which owns the
scheduler).

This is the ONLY place where concrete adapter classes are instantiated.
Everything else depends on Protocol interfaces.

Responsibilities:
  1. Parse settings (command line flags over environment over .env)
  2. Configure structlog
  3. Create the adapters (elbv2 connector, bundle fetcher, PEM extractor)
  4. Wire the cycle (partial application with ports)
  5. Serve the app with Uvicorn
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from functools import partial

import structlog
import uvicorn
from pydantic import ValidationError
from pydantic_settings import CliSettingsSource

from elb_trust_store_exporter.adapters.elb_client import Boto3ElbConnector
from elb_trust_store_exporter.adapters.http_client import HttpBundleFetcher
from elb_trust_store_exporter.adapters.pem_extractor import PemCertificateExtractor
from elb_trust_store_exporter.asgi import create_app
from elb_trust_store_exporter.config import AppSettings, BuildSettings
from elb_trust_store_exporter.domain.models import Snapshot
from elb_trust_store_exporter.pipeline import run_cycle


def configure_structlog(log_level: str = "INFO", log_format: str = "console") -> None:
    """
    Configure structlog for structured logging.

    "json": JSON lines to stdout (machine-readable).
    "console": colored, human-readable console output.
    """
    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def version_banner(build: BuildSettings) -> str:
    return (
        f"{build.version}\n"
        f"commit: {build.commit}\n"
        f"built at: {build.date}\n"
        f"built by: {build.built_by}"
    )


def parse_settings(argv: Sequence[str] | None = None) -> AppSettings:
    """
    Load settings with command line flags taking precedence.

    -v/--version prints the build banner and exits; argparse handles it
    before any setting is validated.
    """
    parser = argparse.ArgumentParser(
        prog="elb-trust-store-exporter",
        description="A Prometheus exporter for AWS Elastic Load Balancer (ELB) trust stores.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=version_banner(BuildSettings()),
        help="Print version information and exit.",
    )
    cli_settings = CliSettingsSource(AppSettings, root_parser=parser)
    args = list(sys.argv[1:] if argv is None else argv)
    return AppSettings(_cli_settings_source=cli_settings(args=args))


type _Adapters = tuple[Boto3ElbConnector, HttpBundleFetcher, PemCertificateExtractor]


def _create_adapters(settings: AppSettings) -> _Adapters:
    """
    Instantiate all concrete adapters from application settings.

    This is the ONLY place where concrete classes are created.
    """
    connector = Boto3ElbConnector(
        region=settings.region,
        timeout=settings.cycle_timeout_seconds,
    )
    return connector, HttpBundleFetcher(), PemCertificateExtractor()


def build_cycle(settings: AppSettings) -> Callable[[], Snapshot]:
    """The scrape cycle with every port and setting bound."""
    connector, fetcher, extractor = _create_adapters(settings)
    return partial(
        run_cycle,
        connector,
        fetcher,
        extractor,
        trust_store_arns=tuple(settings.trust_store_arns),
        interval_seconds=settings.interval_seconds,
        cycle_timeout_seconds=settings.cycle_timeout_seconds,
        bundle_timeout_seconds=settings.bundle_timeout_seconds,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Parse settings, wire dependencies and serve metrics."""
    try:
        settings = parse_settings(argv)
    except ValidationError as e:
        print(f"FATAL: Configuration error: {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level, settings.log_format)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=settings.build.version,
        log_level=settings.log_level,
        region=settings.region or "auto",
        trust_store_arns=len(settings.trust_store_arns),
        interval_seconds=settings.interval_seconds,
        listen_address=settings.web.listen_address,
    )

    app = create_app(settings, build_cycle(settings))

    try:
        uvicorn.run(
            app,
            host=settings.web.host,
            port=settings.web.port,
            log_level=settings.log_level.lower(),
            timeout_keep_alive=120,
        )
    except Exception as e:
        log.error("app.fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
