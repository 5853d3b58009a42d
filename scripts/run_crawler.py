"""
Script to collect the configured tag's catalog and persist it
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import build_engine, init_models
from core.exceptions import CrawlerException
from core.logging import setup_logging
from crawler.checkpoint import CollectionCheckpoint
from crawler.client import ApiClient
from crawler.collector import DataCollector
from crawler.loaders.postgres_loader import PostgresLoader
from crawler.stackoverflow import StackOverflowService
from crawler.transformers.identifiers import JavaApiExtractor

logger = logging.getLogger(__name__)


async def run_crawler():
    """Run or resume a collection"""
    engine = build_engine(settings)

    try:
        await init_models(engine)

        checkpoint = CollectionCheckpoint.load(
            settings.CHECKPOINT_PATH,
            save_interval=settings.CHECKPOINT_SAVE_INTERVAL
        )
        loader = PostgresLoader(
            engine,
            extractor=JavaApiExtractor(settings.IDENTIFIER_PREFIX),
            batch_size=settings.DB_BATCH_SIZE
        )

        async with ApiClient(settings) as client:
            service = StackOverflowService(client, page_size=settings.PAGE_SIZE, tagged=settings.SO_TAGGED)
            collector = DataCollector(
                service,
                loader,
                checkpoint,
                page_size=settings.PAGE_SIZE,
                page_step=settings.PAGE_STEP
            )

            async with loader.bulk_load():
                await collector.collect_data()

        logger.info("Crawler finished")

    except CrawlerException as e:
        logger.error(f"Crawler failed: {e.message}", extra={"error_context": e.to_dict()})
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Crawler failed: {str(e)}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging(settings)
    asyncio.run(run_crawler())
