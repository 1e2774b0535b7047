"""Create (or recreate) the FocusTube schema: ``python -m focustube.db.init_db [--drop]``."""

import argparse
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from focustube.db.models import Base

logger = logging.getLogger(__name__)


async def init_models(db_engine: AsyncEngine, *, drop_existing: bool = False) -> None:
    """Create all tables, optionally dropping the existing ones first."""

    async with db_engine.begin() as conn:
        if drop_existing:
            logger.warning("Dropping all FocusTube tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready", extra={"tables": sorted(Base.metadata.tables)})


def main(argv: list[str] | None = None) -> None:
    from focustube.db.session import engine

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="drop existing tables before creating them")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_models(engine, drop_existing=args.drop))


if __name__ == "__main__":
    main()
