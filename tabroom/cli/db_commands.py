"""
Database CLI Commands

Database operations: init
"""
import asyncio

from tabroom.cli.base import BaseCommand
from tabroom.database import close_db, create_engine_from_settings, init_db


class DbCommand(BaseCommand):
    """Database CLI command handler."""

    def execute(self, args) -> int:
        """Execute database command."""
        if args.db_action == "init":
            return self._init(args)
        else:
            print("Error: Unknown database action")
            return 1

    def _init(self, args) -> int:
        """Create all tables."""
        print("=== Database Init ===")

        try:
            asyncio.run(self._async_init())
            print("✓ Tables created")
            return 0
        except Exception as e:
            print(f"Error: {e}")
            return 1

    async def _async_init(self) -> None:
        engine = create_engine_from_settings(self.settings)
        try:
            await init_db(engine)
        finally:
            await close_db(engine)
