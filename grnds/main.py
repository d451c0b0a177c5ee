import discord
import os
import asyncio
import logging
from discord.ext import commands

from grnds.config import Settings
from grnds.hub import Hub

logger = logging.getLogger("main")

COGS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "cogs")

# Intents needed for prefix commands
intents = discord.Intents.default()
intents.message_content = True
intents.members = True


class GrndsBot(commands.Bot):
    def __init__(self, hub: Hub, settings: Settings):
        super().__init__(
            command_prefix=".",
            intents=intents,
            help_command=None,
            application_id=settings.app_id
        )
        self.hub = hub
        self.settings = settings

    async def setup_hook(self):
        logger.info("--- Starting setup ---")
        await self.hub.start()
        logger.info("Database connected.")

        for filename in sorted(os.listdir(COGS_DIR)):
            if filename.endswith(".py") and filename != "__init__.py":
                try:
                    await self.load_extension(f"grnds.cogs.{filename[:-3]}")
                    logger.info(f"Cog loaded: {filename}")
                except commands.ExtensionError as e:
                    logger.error(f"FAILED to load {filename}: {e}")

        logger.info("--- Setup finished ---")

    async def on_ready(self):
        logger.info(f'Bot online as: {self.user}')

    async def close(self):
        await super().close()
        await self.hub.close()


async def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level,
                        format='%(levelname)s:%(name)s:%(message)s')

    if not settings.discord_token:
        logger.error("DISCORD_TOKEN is not set (.env or environment).")
        return

    bot = GrndsBot(Hub.from_settings(settings), settings)

    async with bot:
        await bot.start(settings.discord_token)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by keyboard interrupt.")


if __name__ == "__main__":
    run()
