import asyncio
import logging

from aiogram import Bot, Dispatcher

from scoring import ScoringService, load_config
from scoring.log import setup_logging
from tg_bot.handlers import create_router

logger = logging.getLogger(__name__)


async def main():
    setup_logging("bot.log")
    config = load_config()
    if not config.bot.token:
        raise RuntimeError("BOT_TOKEN должен быть установлен в переменных окружения или в конфиге.")

    service = ScoringService.from_config(config)
    bot = Bot(config.bot.token)
    dp = Dispatcher()
    dp.include_router(create_router(service, config.bot.admin_ids))

    logger.info(f"Starting bot, {len(config.bot.admin_ids)} admin(s)")
    try:
        await dp.start_polling(bot)
    finally:
        service.close()
        await bot.session.close()


if __name__ == '__main__':
    asyncio.run(main())
