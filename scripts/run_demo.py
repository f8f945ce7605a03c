#!/usr/bin/env python3
"""
Demo Runner Script

Seeds synthetic AI call telemetry and suggestion decisions into an
in-memory usage monitor, then prints the resulting views.

This script:
1. Generates calls spread over the last 24 hours across both services
2. Records a decision for a share of the suggestions
3. Prints the summary, timeline, cost breakdown and accuracy metrics
4. Runs the threshold check and prints the open alerts

Usage:
    python scripts/run_demo.py                       # 200 calls, 5% failures
    python scripts/run_demo.py --failure-rate 0.3    # Trigger the error-rate alert
    python scripts/run_demo.py --range 7d            # Summarize a wider window
    python scripts/run_demo.py --verbose             # Show each generated call
"""

import argparse
import random
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from usage_monitor.monitor import UsageMonitor
from usage_monitor.schemas import AIOperation, AIService, DecisionStatus, TimeRange, utc_now
from usage_monitor.storage import InMemoryDocumentStore

# Operations each service handles in the demo
SERVICE_OPERATIONS: dict[AIService, list[AIOperation]] = {
    AIService.GROQ: [
        AIOperation.NICHE_DISCOVERY,
        AIOperation.CLASSIFICATION,
        AIOperation.SEARCH_QUERY_GENERATION,
    ],
    AIService.HUGGINGFACE: [
        AIOperation.SENTIMENT_ANALYSIS,
        AIOperation.CONTENT_ANALYSIS,
    ],
}

FAILURE_REASONS = [
    "Rate limit exceeded",
    "Model is currently loading",
    "Upstream timeout",
    "Malformed JSON in model output",
]


class DemoClock:
    """Settable clock so generated records land across the window."""

    def __init__(self) -> None:
        self.now = utc_now()

    def __call__(self) -> datetime:
        return self.now


def seed_calls(
    monitor: UsageMonitor,
    clock: DemoClock,
    rng: random.Random,
    requests: int,
    failure_rate: float,
    verbose: bool = False,
) -> list[str]:
    """
    Record synthetic calls spread uniformly over the last 24 hours.

    Returns:
        Suggestion ids of the successful calls
    """
    end = clock.now
    suggestion_ids = []

    for i in range(requests):
        clock.now = end - timedelta(seconds=rng.uniform(60, 24 * 3600))
        service = rng.choice(list(SERVICE_OPERATIONS))
        operation = rng.choice(SERVICE_OPERATIONS[service])
        success = rng.random() >= failure_rate
        latency = max(rng.gauss(900 if service == AIService.GROQ else 2400, 400), 50.0)
        confidence = min(max(rng.gauss(0.78, 0.12), 0.0), 1.0) if success else None
        suggestion_id = f"sugg-{i:04d}" if success else None

        monitor.record_api_call(
            service,
            operation,
            success,
            latency,
            confidence=confidence,
            tokens_used=rng.randint(150, 1200) if success else None,
            error=None if success else rng.choice(FAILURE_REASONS),
            suggestion_id=suggestion_id,
        )
        if suggestion_id:
            suggestion_ids.append(suggestion_id)

        if verbose:
            status = "OK" if success else "FAILED"
            print(
                f"[{i + 1:4d}/{requests}] {status:6s} | {service.value:<12} | "
                f"{operation.value:<24} | {latency:7.1f}ms | "
                f"conf: {confidence if confidence is not None else float('nan'):.2f}"
            )

    clock.now = end
    return suggestion_ids


def seed_decisions(monitor: UsageMonitor, rng: random.Random, suggestion_ids: list[str]) -> None:
    """Record a review decision, then a processing outcome, for some suggestions."""
    for suggestion_id in suggestion_ids:
        roll = rng.random()
        if roll < 0.55:
            monitor.record_decision(suggestion_id, DecisionStatus.APPROVED, user_id="reviewer")
            outcome = DecisionStatus.COMPLETED if rng.random() < 0.9 else DecisionStatus.FAILED
            monitor.record_decision(suggestion_id, outcome)
        elif roll < 0.75:
            monitor.record_decision(suggestion_id, DecisionStatus.REJECTED, user_id="reviewer")
        else:
            monitor.record_decision(suggestion_id, DecisionStatus.PENDING)


def print_report(monitor: UsageMonitor, time_range: TimeRange) -> None:
    """Print a formatted report of every monitor view."""
    summary = monitor.get_metrics_summary(time_range)

    print("\n" + "=" * 60)
    print(f"AI USAGE SUMMARY ({time_range.value})")
    print("=" * 60)
    print(f"\nRequests:       {summary.total_requests}")
    print(f"  Successful:   {summary.successful_requests}")
    print(f"  Failed:       {summary.failed_requests}")
    print(f"Success rate:   {summary.success_rate:.1f}%")
    print(f"Avg latency:    {summary.avg_response_time:.1f}ms")
    print(f"Avg confidence: {summary.avg_confidence:.2f}")
    dist = summary.confidence_distribution
    print(f"  high/medium/low: {dist.high}/{dist.medium}/{dist.low}")

    print("\nBy Service:")
    print(f"  {'Service':<14} {'Requests':>9} {'Success':>9} {'Avg ms':>9} {'Conf':>6}")
    print(f"  {'-'*14} {'-'*9} {'-'*9} {'-'*9} {'-'*6}")
    for service, metrics in summary.services.items():
        conf = f"{metrics.avg_confidence:.2f}" if metrics.avg_confidence is not None else "-"
        print(
            f"  {service.value:<14} {metrics.total_requests:>9} "
            f"{metrics.success_rate:>8.1f}% {metrics.avg_response_time:>9.1f} {conf:>6}"
        )

    print("\nTimeline:")
    for point in monitor.get_request_timeline(time_range):
        bar = "#" * min(point.requests, 40)
        print(f"  {point.timestamp:%m-%d %H:%M} {point.requests:>4} {bar}")

    cost = monitor.get_cost_breakdown()
    print("\nFree Tier Usage (30 days):")
    for service, service_cost in cost.services.items():
        print(
            f"  {service.value:<14} {service_cost.requests:>7} / {service_cost.free_limit:>9,} "
            f"({service_cost.usage_percentage:.3f}%)"
        )
    print(f"  Total cost: ${cost.total:.6f} (projected monthly ${cost.projected_monthly:.6f})")

    accuracy = monitor.get_accuracy_metrics()
    print("\nAccuracy:")
    print(f"  Decisions:          {accuracy.total_decisions}")
    print(f"  Approval rate:      {accuracy.approval_rate:.1f}%")
    print(f"  Rejection rate:     {accuracy.rejection_rate:.1f}%")
    print(f"  Processing success: {accuracy.processing_success_rate:.1f}%")

    alerts = monitor.check_thresholds()
    print(f"\nOpen Alerts ({len(alerts)}):")
    for alert in alerts:
        print(f"  [{alert.severity.value.upper()}] {alert.type.value}: {alert.message}")
    if not alerts:
        print("  none")

    print("\n" + "=" * 60)


def main():
    """Main entry point for the demo runner."""

    parser = argparse.ArgumentParser(
        description="Seed synthetic AI telemetry and print the monitor views",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_demo.py                        Default run
  python scripts/run_demo.py --requests 1000        More traffic
  python scripts/run_demo.py --failure-rate 0.3     Trigger the error-rate alert
  python scripts/run_demo.py --seed 7 --verbose     Reproducible, show each call
        """
    )

    parser.add_argument(
        "--requests", "-n",
        type=int,
        default=200,
        help="Number of calls to generate (default: 200)"
    )
    parser.add_argument(
        "--failure-rate",
        type=float,
        default=0.05,
        help="Share of failed calls, 0.0-1.0 (default: 0.05)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible runs"
    )
    parser.add_argument(
        "--range",
        dest="time_range",
        choices=[r.value for r in TimeRange],
        default=TimeRange.LAST_24H.value,
        help="Window to summarize (default: 24h)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show each generated call"
    )

    args = parser.parse_args()

    if args.requests < 0:
        print("ERROR: --requests must be >= 0")
        sys.exit(1)
    if not 0.0 <= args.failure_rate <= 1.0:
        print("ERROR: --failure-rate must be between 0.0 and 1.0")
        sys.exit(1)

    print("=" * 60)
    print("AI Usage Monitor Demo Runner")
    print("=" * 60)

    rng = random.Random(args.seed)
    clock = DemoClock()
    monitor = UsageMonitor(InMemoryDocumentStore(), clock=clock)

    start_time = time.time()
    print(f"\nGenerating {args.requests} calls (failure rate {args.failure_rate:.0%})...")
    suggestion_ids = seed_calls(
        monitor, clock, rng, args.requests, args.failure_rate, verbose=args.verbose
    )
    seed_decisions(monitor, rng, suggestion_ids)
    print(f"Seeded in {time.time() - start_time:.2f}s")

    print_report(monitor, TimeRange(args.time_range))


if __name__ == "__main__":
    main()
