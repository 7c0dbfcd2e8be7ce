from app.bot.client import BotClient
from app.config.db import build_engine, build_sessionmaker
from app.settings import get_settings
from app.utils.logging_config import setup_logging


def main() -> None:
    """
    Build the database handle and the Discord client, then run until stopped.
    """
    settings = get_settings()
    logger = setup_logging(settings.DEBUG)

    engine = build_engine(settings)
    session_factory = build_sessionmaker(engine)
    bot = BotClient(settings, engine, session_factory)

    logger.info("Starting ticket and vouch bot")
    bot.run(settings.DISCORD_TOKEN, log_handler=None)


if __name__ == "__main__":
    main()
