"""
Shared plumbing for CLI command handlers
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tabroom.config.settings import Settings, get_settings
from tabroom.database import close_db, create_engine_from_settings, create_session_factory


class BaseCommand:
    """Builds an engine per invocation and disposes it afterwards."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url

    @property
    def settings(self) -> Settings:
        if self.database_url:
            return Settings(database_url=self.database_url)
        return get_settings()

    def run(self, func: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
        return asyncio.run(self._run(func))

    async def _run(self, func: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
        engine = create_engine_from_settings(self.settings)
        try:
            session_factory = create_session_factory(engine)
            async with session_factory() as session:
                return await func(session)
        finally:
            await close_db(engine)
