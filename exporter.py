"""
Periodic Google Sheets export.

Every job under `gsheet` in the config runs on its own interval until the
process is stopped.
"""
import argparse
import asyncio
import logging

from scoring.config import GSheetJob, load_config
from scoring.log import setup_logging
from scoring.service import ScoringService
from scoring.sheets_exporter import SheetsExporter

logger = logging.getLogger(__name__)


async def run_job(course: str, exporter: SheetsExporter, interval_minutes: int):
    """Export one course forever; a failed run is logged and retried on the next tick."""
    while True:
        try:
            await asyncio.to_thread(exporter.export, course)
        except Exception as e:
            logger.exception(f"Export of {course} to '{exporter.job.sheet_name}' failed: {e}")
        await asyncio.sleep(interval_minutes * 60)


def build_jobs(service: ScoringService) -> list[tuple[str, SheetsExporter, GSheetJob]]:
    jobs = []
    for course, course_jobs in service.config.gsheet.items():
        for job in course_jobs:
            exporter = SheetsExporter(job, service.store, service.config.emoji_variants)
            jobs.append((course, exporter, job))
    return jobs


async def main(config_path: str | None = None):
    service = ScoringService.from_config(load_config(config_path))
    jobs = build_jobs(service)
    if not jobs:
        logger.warning("No gsheet jobs configured, nothing to export")
        service.close()
        return

    logger.info(f"Садимся экспортить: {len(jobs)} job(s)")
    try:
        await asyncio.gather(*(
            run_job(course, exporter, job.interval_minutes)
            for course, exporter, job in jobs
        ))
    finally:
        service.close()
        logger.info("Закончили экспортить")


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Export lab completion to Google Sheets")
    parser.add_argument("--config", help="Path to config file (default: $LABSCORE_CONFIG or config.yaml)")
    args = parser.parse_args()

    setup_logging("exporter.log")
    try:
        asyncio.run(main(args.config))
    except KeyboardInterrupt:
        pass
