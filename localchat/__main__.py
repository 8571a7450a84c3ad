#!/usr/bin/env python3
"""
Application Starter for localchat
=================================

Starter that:
1. Loads settings and configures logging
2. Wires the bus, provider, chat store and service together
3. Runs the CLI
4. Handles graceful shutdown
"""

import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from localchat.chat.service import ChatService
from localchat.config.settings import Settings
from localchat.exceptions import ConfigError, LocalChatError
from localchat.protocol.bus import EventBus
from localchat.providers import create_provider
from localchat.storage.sqlite import SqliteChatStore
from localchat.ui.cli import PromptToolkitCLI
from localchat.utils.logger import EventLogger, setup_logging


class Application:
    """Main application container."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.service = None
        self.cli = None
        self.running = False

    async def start(self):
        """Start the application."""
        bus = EventBus()
        await EventLogger(bus).start()

        store = await SqliteChatStore(self.settings.database_path).open()
        provider = create_provider(self.settings)
        if not await provider.validate_connection():
            print(
                f"⚠️  Ollama is not reachable at {self.settings.ollama_host}. "
                "Replies will fail until it is running.",
                file=sys.stderr,
            )

        self.service = ChatService(bus, provider, store, self.settings)
        self.cli = PromptToolkitCLI(self.service, bus, self.settings)
        await self.cli.start()

        self.running = True
        await self.cli.run()

    async def stop(self):
        """Stop the application gracefully."""
        if not self.running:
            return
        self.running = False

        if self.cli:
            await self.cli.stop()
        if self.service:
            try:
                await self.service.close()
            except LocalChatError as e:
                logging.getLogger(__name__).error(f"Error closing service: {e}")


async def main():
    """Main entry point."""
    try:
        settings = Settings()
    except (ConfigError, ValidationError) as e:
        print(f"❌ Config Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings)
    app = Application(settings)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, lambda: asyncio.ensure_future(app.stop()))
    except NotImplementedError:
        # Windows event loops have no signal handler support.
        pass

    try:
        await app.start()
    except LocalChatError as e:
        print(f"❌ {e.message}\n   {e.user_hint}", file=sys.stderr)
        logging.getLogger().critical("Application crash", exc_info=True)
        sys.exit(1)
    finally:
        await app.stop()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n[localchat] Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
