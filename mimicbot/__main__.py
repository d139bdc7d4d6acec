"""Command line entry point.

    python -m mimicbot --config config.json           # show what would run
    python -m mimicbot --config config.json --local   # chat in the terminal

The real chat platform adapter is not part of this package; ``--local``
runs the agent against the in-memory platform with you as the only other
user.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from loguru import logger

from mimicbot.agent.loop import AgentLoop
from mimicbot.channels.base import Channel, Guild, PlatformUser
from mimicbot.channels.mock import InMemoryPlatform
from mimicbot.config.loader import load_config
from mimicbot.config.schema import Config
from mimicbot.errors import ConfigError
from mimicbot.memory.embeddings import Embeddings
from mimicbot.memory.vector_memory import VectorMemory
from mimicbot.providers.base import Backends
from mimicbot.providers.litellm_provider import LiteLLMProvider

LOCAL_GUILD = "local"
LOCAL_CHANNEL = "general"


def build_backends(config: Config) -> Backends:
    models = config.models
    backends = Backends(chat=LiteLLMProvider(
        api_key=models.api_key,
        api_base=models.api_base,
        default_model=models.base,
        fallback_models=models.fallback_models,
        timeout=models.timeout,
    ))
    if config.memory.enable:
        embedding_fn = None
        if config.memory.embedding_model:
            embedding_fn = Embeddings(config.memory.embedding_model, models.api_key, models.api_base)
        backends.bind("vector", VectorMemory(
            path=config.memory.chroma_path,
            collection=config.memory.collection,
            embedding_fn=embedding_fn,
        ))
    return backends


def build_local_platform() -> tuple[InMemoryPlatform, PlatformUser]:
    platform = InMemoryPlatform()
    platform.add_guild(Guild(LOCAL_GUILD, "local"))
    platform.add_channel(Channel(LOCAL_CHANNEL, LOCAL_CHANNEL, guild_id=LOCAL_GUILD))
    platform.add_user(platform.self_user, guild_id=LOCAL_GUILD)
    you = platform.add_user(PlatformUser("you", "you"), guild_id=LOCAL_GUILD)
    return platform, you


async def run_local(agent: AgentLoop, platform: InMemoryPlatform, you: PlatformUser) -> None:
    platform.on_message(agent.on_message)
    seen = 0
    print("type a message, ctrl-d to quit")
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            break
        if line.strip():
            await platform.inject_message(line.rstrip("\n"), author=you, channel_id=LOCAL_CHANNEL)
        # Give the collector window time to close before draining the queue
        await asyncio.sleep(agent.config.delays.collector.max + 0.1)
        await agent.scheduler.join()
        for record in platform.sent[seen:]:
            print(f"{agent.assembler.self_user().name}: {record.content}")
        seen = len(platform.sent)
    await agent.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mimicbot")
    parser.add_argument("--config", help="path to config.json (default: $MIMICBOT_CONFIG or ./config.json)")
    parser.add_argument("--local", action="store_true", help="chat with the agent in this terminal")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Config error: {e}")
        return 1

    platform, you = build_local_platform()

    async def _run() -> None:
        agent = AgentLoop(platform, config, build_backends(config))
        logger.info(f"Task kinds: {', '.join(agent.scheduler.kinds)}")
        logger.info(f"Plugins: {', '.join(agent.registry.plugins)}")
        if args.local:
            await run_local(agent, platform, you)
        else:
            await agent.stop()

    asyncio.run(_run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
