import asyncio
from jobboard import db
from jobboard.core import config


async def main(settings):
    engine = db.init_db(settings)
    try:
        await db.recreate_table(engine)
    finally:
        await db.close_engine(engine)


if __name__ == "__main__":
    settings = config.get_settings()
    print(f"Recreating tables on {settings.DATABASE_URL}")
    asyncio.run(main(settings))
