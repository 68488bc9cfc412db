import argparse
import asyncio
import datetime
import logging
from typing import List
import uuid

import humanfriendly

from uploader.config import config
from uploader.db.session import init_db, engine
from uploader.services.upload_service import UploadService

logger = logging.getLogger("collect_garbage")


async def collect_garbage(max_age: datetime.timedelta, service: UploadService) -> List[uuid.UUID]:
    logger.info("[gc] start max_age=%s", humanfriendly.format_timespan(max_age))

    await init_db()
    collected = await service.garbage_collect(max_age)

    for session_id in collected:
        logger.info("[gc] failed abandoned upload %s", session_id)

    logger.info("[gc] done collected=%d", len(collected))
    return collected


async def main(max_age: datetime.timedelta) -> None:
    try:
        await collect_garbage(max_age, UploadService.get_instance())
    finally:
        await engine.dispose()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(
        description="Mark abandoned upload sessions as failed and release their staging storage. "
                    "Sessions still pending or assembling with no activity for longer than "
                    "--max-age are collected."
    )
    parser.add_argument(
        "--max-age",
        default=str(config.SESSION_MAX_AGE),
        help="Inactivity threshold, e.g. '30m', '12h' or '2d'."
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    seconds = humanfriendly.parse_timespan(args.max_age)
    asyncio.run(main(datetime.timedelta(seconds=seconds)))
