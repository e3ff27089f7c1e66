# main.py
import argparse
import asyncio
from typing import Optional

from rich.console import Console

from leadsync.app_factory import create_client_session
from leadsync.core.logging_config import configure_logging
from leadsync.core.managers.observers import LoggingReconcileObserver
from leadsync.core.models.job import JobSnapshot, ReconcileStatus, ScrapeRequest
from leadsync.core.settings import app_settings, logger

console = Console()


class ConsoleProgressObserver:
    """Prints every status change of the tracked scrape."""

    async def on_status_changed(self, old_status: ReconcileStatus, new_status: ReconcileStatus) -> None:
        console.print(
            f"[bold]{new_status.ui_status}[/bold] {new_status.progress:3d}% "
            f"found={new_status.found_count} saved={new_status.saved_count} {new_status.message}"
        )

    async def on_job_finished(self, final_status: ReconcileStatus, snapshot: Optional[JobSnapshot]) -> None:
        style = "green" if final_status.ui_status == "completed" else "red"
        console.print(f"[{style}]{final_status.message}[/{style}]")


async def run_scrape(request: ScrapeRequest) -> int:
    async with create_client_session(app_settings) as session:
        scrape = session.scrape_session(
            observers=[ConsoleProgressObserver(), LoggingReconcileObserver()]
        )
        scope = await scrape.start(request)
        if scope is not None:
            await scope.wait()
        return 0 if scrape.status.ui_status == "completed" else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Start a map scrape and follow it to completion.")
    parser.add_argument("location", help="Area to scrape, e.g. 'Route 9, Freehold, NJ'")
    parser.add_argument("--radius", type=float, default=None, help="Search radius in miles")
    parser.add_argument("--business-type", default=None)
    parser.add_argument("--max-results", type=int, default=None)
    args = parser.parse_args(argv)

    configure_logging(app_settings.LEADSYNC_LOG_LEVEL)
    app_settings.print_settings(logger)

    request = ScrapeRequest(
        location=args.location,
        radius=args.radius,
        business_type=args.business_type,
        max_results=args.max_results,
    )
    return asyncio.run(run_scrape(request))


if __name__ == "__main__":
    raise SystemExit(main())
