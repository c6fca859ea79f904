from __future__ import annotations

import asyncio
import io

from replication_checker.ui.console import ConsoleUserInterface


def test_alert_prints_title_and_message() -> None:
    stream = io.StringIO()

    asyncio.run(ConsoleUserInterface(stream=stream).alert("Scan Complete", "3 items"))

    assert stream.getvalue() == "\n== Scan Complete ==\n3 items\n"


def test_preset_answer_skips_the_prompt() -> None:
    def reader(_prompt: str) -> str:
        raise AssertionError("should not prompt")

    ui = ConsoleUserInterface(answer=False, stream=io.StringIO(), reader=reader)

    assert asyncio.run(ui.confirm("Read-Only Library Detected", "Copy?")) is False


def test_prompted_answers() -> None:
    prompts: list[str] = []
    replies = iter(["  Yes ", "n", ""])

    def reader(prompt: str) -> str:
        prompts.append(prompt)
        return next(replies)

    ui = ConsoleUserInterface(stream=io.StringIO(), reader=reader)

    answers = [asyncio.run(ui.confirm("Title", "Message")) for _ in range(3)]

    assert answers == [True, False, False]
    assert prompts == ["Proceed? [y/N] "] * 3


def test_end_of_input_declines() -> None:
    def reader(_prompt: str) -> str:
        raise EOFError

    ui = ConsoleUserInterface(stream=io.StringIO(), reader=reader)

    assert asyncio.run(ui.confirm("Title", "Message")) is False
