"""Terminal implementation of the user interaction port."""

# ruff: noqa: T201

from __future__ import annotations

import asyncio
import sys
from logging import getLogger
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

_YES = frozenset({"y", "yes"})


class ConsoleUserInterface:
    """Print alerts and ask confirmations on the terminal.

    With ``answer`` set, confirmations are answered without prompting, which is
    what ``--yes``/``--no`` and unattended ``watch`` runs use.
    """

    def __init__(
        self,
        *,
        answer: bool | None = None,
        stream: TextIO | None = None,
        reader: Callable[[str], str] = input,
    ) -> None:
        self._answer = answer
        self._stream = stream or sys.stdout
        self._reader = reader

    async def confirm(self, title: str, message: str) -> bool:
        self._show(title, message)
        if self._answer is not None:
            log.info("%s: answered %s", title, "yes" if self._answer else "no")
            return self._answer
        try:
            reply = await asyncio.to_thread(self._reader, "Proceed? [y/N] ")
        except EOFError:
            return False
        return reply.strip().lower() in _YES

    async def alert(self, title: str, message: str) -> None:
        self._show(title, message)

    def _show(self, title: str, message: str) -> None:
        print(f"\n== {title} ==", file=self._stream)
        print(message, file=self._stream)
        self._stream.flush()


__all__ = ["ConsoleUserInterface"]
