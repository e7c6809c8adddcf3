"""Terminal chat with live web search.

Demonstrates:
- Restoring and saving settings with load_config / save_config
- Consuming AgentController.iter() as a transcript sink
- Streaming partial assistant text as it arrives
- Ctrl-C to cancel the in-flight request

Usage:
    Add TOOLSTREAM_API_KEY=sk-... (or OPENAI_API_KEY) to .env, then:
    uv run --env-file=.env examples/search_chat.py
"""

import asyncio
import logging
import signal
from pathlib import Path

from toolstream.config import AgentConfig, load_config, save_config
from toolstream.controller import AgentController
from toolstream.events import (
    RunCompleteEvent,
    ToolResultEvent,
    ToolStartedEvent,
    TurnUpdateEvent,
)

SETTINGS_PATH = Path.home() / ".toolstream" / "settings.json"


def current_config(path: Path = SETTINGS_PATH) -> AgentConfig:
    saved = load_config(path)
    env = AgentConfig.from_env()
    if env.api_key:
        saved.api_key = env.api_key
    return saved


def persist_settings(path: Path = SETTINGS_PATH) -> None:
    """Write back the file's own settings; environment keys stay out."""
    save_config(load_config(path), path)


async def render(controller: AgentController, text: str):
    printed = 0
    async for event in controller.iter(text):
        if isinstance(event, TurnUpdateEvent):
            content = event.message.content
            if event.final and (event.message.canceled or event.message.error):
                print(f"\n[{content}]")
                printed = 0
            elif not event.final:
                print(content[printed:], end="", flush=True)
                printed = len(content)
            else:
                print()
                printed = 0
        elif isinstance(event, ToolStartedEvent):
            print(f"\n> {event.call.name} {event.call.arguments}")
        elif isinstance(event, ToolResultEvent):
            status = "done" if event.outcome.ok else "failed"
            print(f"> {status}\n{event.outcome.summary}\n")
        elif isinstance(event, RunCompleteEvent):
            print(f"[{event.result.status.value} after {event.result.rounds} round(s)]\n")


async def main():
    controller = AgentController(config=current_config)
    persist_settings()

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, controller.cancel)

    while True:
        try:
            text = await asyncio.to_thread(input, "User: ")
        except EOFError:
            print("Farewell!")
            return
        if text.strip() == "/clear":
            controller.clear()
            print("Conversation cleared.\n")
            continue
        print("Assistant: ", end="", flush=True)
        await render(controller, text)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    asyncio.run(main())
