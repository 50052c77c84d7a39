#!/usr/bin/env python3
"""Inspect the conversation memory database.

Usage examples:
    # Threads owned by the default user
    uv run python scripts/memory_admin.py threads

    # Threads of a sub-agent
    uv run python scripts/memory_admin.py threads --resource developer

    # Last 20 messages of a thread
    uv run python scripts/memory_admin.py history <conversation_id> --limit 20

    # Message counts and activity window
    uv run python scripts/memory_admin.py stats <conversation_id>

    # Semantic search (rebuilds the index from stored messages first)
    uv run python scripts/memory_admin.py search "database indexing" --top-k 5

    # Check that stored messages embed cleanly
    uv run python scripts/memory_admin.py sync

    # Supervisor context as an agent would see it
    uv run python scripts/memory_admin.py context "deploy the api" --thread <conversation_id>
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.config import settings
from src.memory.runtime import MemoryRuntime

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)


async def cmd_threads(runtime: MemoryRuntime, args: argparse.Namespace) -> None:
    threads = await runtime.store.get_conversations(args.resource)
    if not threads:
        print(f"No threads for {args.resource}")
        return
    for t in threads:
        print(f"{t.id}  {t.updated_at}  {t.title}")


async def cmd_history(runtime: MemoryRuntime, args: argparse.Namespace) -> None:
    for m in await runtime.store.get_history(args.conversation_id, args.limit):
        print(f"[{m.created_at}] {m.role.upper()}: {m.content}")


async def cmd_stats(runtime: MemoryRuntime, args: argparse.Namespace) -> None:
    stats = await runtime.store.get_conversation_stats(args.conversation_id)
    print(f"messages:      {stats.message_count}")
    print(f"tool messages: {stats.tool_call_count}")
    print(f"started:       {stats.start_time or '-'}")
    print(f"last activity: {stats.last_activity or '-'}")


async def cmd_search(runtime: MemoryRuntime, args: argparse.Namespace) -> None:
    for item, score in await runtime.index.search_with_scores(args.query, args.top_k):
        print(f"{score:.3f}  {item.role:<9}  {item.text[:100]}")


async def cmd_sync(runtime: MemoryRuntime, args: argparse.Namespace) -> None:
    count = await runtime.store.sync_to_vector_index(args.conversation_id)
    print(f"Indexed {count} messages")


async def cmd_context(runtime: MemoryRuntime, args: argparse.Namespace) -> None:
    print(await runtime.supervisor.retrieve(args.query, args.thread))


COMMANDS = {
    "threads": cmd_threads,
    "history": cmd_history,
    "stats": cmd_stats,
    "search": cmd_search,
    "context": cmd_context,
    "sync": cmd_sync,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect conversation memory")
    sub = parser.add_subparsers(dest="command", required=True)

    threads = sub.add_parser("threads", help="List threads for a resource")
    threads.add_argument("--resource", default=settings.default_resource_id)

    history = sub.add_parser("history", help="Show recent messages of a thread")
    history.add_argument("conversation_id")
    history.add_argument("--limit", type=int, default=settings.message_query_limit)

    stats = sub.add_parser("stats", help="Show thread statistics")
    stats.add_argument("conversation_id")

    search = sub.add_parser("search", help="Semantic search over stored messages")
    search.add_argument("query")
    search.add_argument("--top-k", type=int, default=settings.vector_search_top_k)

    context = sub.add_parser("context", help="Print supervisor retrieval context")
    context.add_argument("query")
    context.add_argument("--thread", default=None)

    sync = sub.add_parser("sync", help="Replay stored messages into the vector index")
    sync.add_argument("conversation_id", nargs="?", default=None)

    return parser


async def run(args: argparse.Namespace) -> None:
    runtime = MemoryRuntime()
    needs_index = args.command in ("search", "context")
    await runtime.init(rehydrate=needs_index)
    try:
        await COMMANDS[args.command](runtime, args)
    finally:
        await runtime.close()


def main() -> None:
    asyncio.run(run(build_parser().parse_args()))


if __name__ == "__main__":
    main()
