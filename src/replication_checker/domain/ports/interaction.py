"""Port for user confirmations and summary alerts."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class UserInterface(Protocol):
    async def confirm(self, title: str, message: str) -> bool: ...

    async def alert(self, title: str, message: str) -> None: ...


__all__ = ["UserInterface"]
