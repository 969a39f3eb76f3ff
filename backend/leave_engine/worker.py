"""Worker process for the scheduled accrual sweep.

Runs an asyncio loop that credits monthly accruals and processes work
anniversaries once per ``accrual_interval_seconds`` (daily by default).
A sweep is idempotent, so running it every day only credits each month once.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from leave_engine.config import LOG_FORMAT, get_settings
from leave_engine.db import get_session_factory
from leave_engine.services.accrual import run_accrual_sweep

logger = logging.getLogger(__name__)


async def run_accrual_loop() -> None:
    """Main worker loop: one accrual sweep per interval."""
    settings = get_settings()
    logger.info("Accrual worker started (interval=%ds)", settings.accrual_interval_seconds)
    session_factory = get_session_factory()

    while True:
        today = date.today()
        try:
            async with session_factory() as session:
                result = await run_accrual_sweep(session, today)
            if result.errors:
                logger.warning("Accrual sweep for %s finished with %d failed units", today, result.errors)
        except Exception:
            logger.exception("Accrual sweep failed for %s", today)

        await asyncio.sleep(settings.accrual_interval_seconds)


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(level=get_settings().log_level.upper(), format=LOG_FORMAT)
    asyncio.run(run_accrual_loop())


if __name__ == "__main__":
    main()
