#!/usr/bin/env python3
"""
Flashcard generation example.

Shows the three ways to get cards out of the client: a complete result, a
per-card callback, and an async iterator. Also shows cancelling a running
generation.

Usage:
    export SUPABASE_URL="https://your-project.supabase.co"
    export FLASHCARD_ACCESS_TOKEN="your-session-token"
    python examples/generate_flashcards.py
"""

import asyncio

from flashcard_stream import (
    FlashcardClient,
    GenerationCancelledError,
    Identity,
    create_cancel_pair,
)
from flashcard_stream.types import Flashcard


async def main() -> None:
    """Run flashcard generation examples."""
    client = FlashcardClient.from_env()
    client.set_user(Identity(id="example-user"))

    reason = client.unavailable_reason()
    if reason is not None:
        print(f"Generation unavailable: {reason}")
        return

    async with client:
        # Method 1: Complete result with a title (single non-streaming request)
        result = await client.generate_with_title("Photosynthesis", 5)
        print(f"Title: {result.title}")
        for card in result.flashcards:
            print(f"  Q: {card.question}")
            print(f"  A: {card.answer}")
        print()

        # Method 2: Per-card callback while the response streams in
        def on_card(card: Flashcard, index: int) -> None:
            print(f"  [{index}] {card.question}")

        cards = await client.generate("World War II key events", 5, on_card=on_card)
        print(f"Received {len(cards)} cards")
        print()

        # Method 3: Async iterator
        async for index, card in client.stream("Spanish verbs for beginners", 5):
            print(f"  [{index}] {card.question} -> {card.answer}")
        print()

        # Cancel after the second card; cards already received are kept
        handle, token = create_cancel_pair()

        def stop_after_two(card: Flashcard, index: int) -> None:
            print(f"  [{index}] {card.question}")
            if index == 1:
                handle.cancel()

        try:
            await client.generate("The solar system", 10, on_card=stop_after_two, cancel_token=token)
        except GenerationCancelledError:
            session = client.last_session
            kept = len(session.result) if session else 0
            print(f"Cancelled with {kept} cards kept")

        if client.last_session is not None:
            print(f"Last session stats: {client.last_session.stats.to_dict()}")


if __name__ == "__main__":
    asyncio.run(main())
