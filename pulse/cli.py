"""
Command line entry points: manual runs, maintenance jobs and the scheduler.

    python -m pulse.cli run
    python -m pulse.cli rescore
    python -m pulse.cli backfill-engagement --limit 500
    python -m pulse.cli schedule --interval-hours 3
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

import click
from apscheduler.schedulers.blocking import BlockingScheduler
from dotenv import load_dotenv

from pulse import Services, build_pipeline, build_services
from pulse.engagement import EngagementEnricher
from pulse.errors import RunInProgressError

logger = logging.getLogger(__name__)

MAX_BACKFILL_PASSES = 50


def _run_once(services: Services) -> None:
    try:
        stats = build_pipeline(services).run()
    except RunInProgressError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)
    click.echo(json.dumps(stats.to_dict(), indent=2))


@click.group()
@click.option("--verbose", is_flag=True, help="Log at DEBUG level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    load_dotenv(os.getenv("PULSE_DOTENV", ".env"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = build_services()


@cli.command()
@click.pass_obj
def run(services: Services):
    """Run the full pipeline once."""
    _run_once(services)


@cli.command()
@click.pass_obj
def rescore(services: Services):
    """Clear importance scores and takes, then run so everything is re-scored."""
    cleared = services.store.reset_scores()
    click.echo(f"Reset scores on {cleared} tweets")
    _run_once(services)


@cli.command("backfill-engagement")
@click.option("--limit", default=500, show_default=True, help="Tweets per pass.")
@click.pass_obj
def backfill_engagement(services: Services, limit: int):
    """Fetch engagement for every tweet that has never been checked."""
    if not services.engagement.configured:
        raise click.ClickException("TWITTER_API_KEY is not set")
    enricher = EngagementEnricher(services.store, services.engagement)
    fetched = skipped = failed = 0
    for _ in range(MAX_BACKFILL_PASSES):
        pending = services.store.tweets_without_engagement(limit)
        if not pending:
            break
        stats = enricher.enrich(pending)
        fetched += stats.fetched
        skipped += stats.skipped
        failed += stats.failed
    click.echo(f"Engagement backfill: {fetched} fetched, {skipped} skipped, {failed} failed")


@cli.command()
@click.option("--interval-hours", type=int, default=None, help="Defaults to PULSE_CRON_INTERVAL_HOURS.")
@click.pass_obj
def schedule(services: Services, interval_hours):
    """Run the pipeline on a fixed interval until interrupted."""
    hours = interval_hours or services.settings.cron_interval_hours
    scheduler = BlockingScheduler(timezone="UTC")

    def job_run():
        try:
            build_pipeline(services).run()
        except RunInProgressError as exc:
            logger.warning("Skipping scheduled run: %s", exc)

    scheduler.add_job(
        job_run,
        "interval",
        hours=hours,
        id="pulse_run",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    logger.info("Scheduler started, running every %s hours", hours)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


if __name__ == "__main__":  # pragma: no cover
    cli()
