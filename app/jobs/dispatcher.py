"""Task queue interface for background work."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

Task = Callable[[], Awaitable[Any]]


class TaskQueue(ABC):
    """Abstract interface for running background tasks with admission control."""

    @abstractmethod
    async def submit(self, task: Task, key: Optional[str] = None) -> "asyncio.Future[Any]":
        """Queue a task. Returns a future settled with the task's outcome."""
        ...

    @abstractmethod
    def get_handle(self, key: str) -> "Optional[asyncio.Future[Any]]":
        """Future of the unsettled task submitted under key, if any."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the worker loops."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the worker loops."""
        ...
