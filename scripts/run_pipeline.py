#!/usr/bin/env python3
"""Run the visitor notification pipeline locally against mock services."""

import argparse
import asyncio
import os
import sys

# Add the shared layer to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src", "layers", "shared", "python"))

from kiosk.config import load_settings
from kiosk.models.pipeline import NotificationStep
from kiosk.models.registration import VisitorRegistration
from kiosk.services.context import build_service_context


def print_step(step: NotificationStep) -> None:
    """Print a step transition."""
    line = f"  [{step.status:<10}] {step.name} (attempt {step.attempts}/{step.max_attempts})"
    if step.error:
        line += f" - {step.error}"
    print(line)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    if not args.live:
        settings.use_mock_services = True
    settings.pipeline_retry_delay = args.retry_delay

    ctx = build_service_context(settings)

    registration = VisitorRegistration(
        first_name=args.first_name,
        last_name=args.last_name,
        company_name=args.company,
        email=args.email,
        host_id=args.host_id,
        host_name=args.host_name,
        host_email=args.host_email,
        nda_accepted=True,
    )

    print(f"Processing registration for {registration.full_name}")
    result = await ctx.pipeline.process_visitor_registration(registration, on_step_update=print_step)

    if result.failed_steps and args.retry:
        print("Retrying failed steps")
        result = await ctx.pipeline.retry_failed_steps(result, registration, on_step_update=print_step)

    print()
    print(f"Success: {result.success}")
    print(f"Completed: {result.completed_steps}/{result.total_steps}")
    if result.monday_record_url:
        print(f"Record: {result.monday_record_url}")

    print()
    print(f"Service health: {ctx.recovery.check_service_health()['overall']}")
    return 0 if result.success else 1


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the notification pipeline for a sample visitor")
    parser.add_argument("--first-name", default="Jane", help="Visitor first name")
    parser.add_argument("--last-name", default="Doe", help="Visitor last name")
    parser.add_argument("--company", default="Acme Films", help="Visitor company")
    parser.add_argument("--email", default="jane.doe@example.com", help="Visitor email")
    parser.add_argument("--host-id", default="1", help="Host staff id")
    parser.add_argument("--host-name", default="Sarah Johnson", help="Host name")
    parser.add_argument("--host-email", default="sarah@sqla.com", help="Host email")
    parser.add_argument("--retry-delay", type=float, default=0.1, help="Seconds between step attempts")
    parser.add_argument("--retry", action="store_true", help="Retry failed steps once after the run")
    parser.add_argument("--live", action="store_true", help="Use the services configured in the environment")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
