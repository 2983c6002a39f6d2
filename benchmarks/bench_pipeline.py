#!/usr/bin/env python3
"""
Pipeline performance benchmarks.

Measures how fast the decoders and extractors turn small chunks into cards.
Small chunks are the worst case for a tokenizer that rescans its buffer.
"""

import json
import time
from typing import Any

from flashcard_stream.config import WireFormat
from flashcard_stream.pipeline import CardTextExtractor, FlatTextDecoder, Pipeline


def card_text(count: int) -> bytes:
    """Flat text body with a title and `count` cards."""
    parts = ["TITLE: Benchmark Deck\n"]
    for i in range(count):
        parts.append(f"CARD_START\nQ: Question number {i}?\nA: Answer number {i}\nCARD_END\n")
    return "".join(parts).encode()


def event_text(count: int) -> bytes:
    """Event-stream body with `count` card events."""
    parts = []
    for i in range(count):
        payload = {"question": f"Question number {i}?", "answer": f"Answer number {i}", "index": i}
        parts.append(f"event: card\ndata: {json.dumps(payload)}\n\n")
    parts.append(f"event: done\ndata: {json.dumps({'totalCards': count})}\n\n")
    return "".join(parts).encode()


def chunked(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


def run_pipeline(name: str, wire_format: WireFormat, body: bytes, chunk_size: int) -> dict[str, Any]:
    """Feed a body through a fresh pipeline and time it."""
    chunks = chunked(body, chunk_size)
    pipeline = Pipeline.for_format(wire_format)

    start = time.perf_counter()
    cards = 0
    for chunk in chunks:
        cards += sum(1 for _ in pipeline.feed(chunk))
    cards += sum(1 for _ in pipeline.finish())
    elapsed = time.perf_counter() - start

    return {
        "name": name,
        "chunks": len(chunks),
        "cards": cards,
        "elapsed_seconds": elapsed,
        "throughput_cps": cards / elapsed if cards else 0,
        "latency_us": (elapsed / cards) * 1_000_000 if cards else 0,
    }


def benchmark_text_small_chunks(count: int = 2000) -> dict[str, Any]:
    """Flat text delivered a few bytes at a time."""
    return run_pipeline("FlatText/8B", WireFormat.TEXT, card_text(count), 8)


def benchmark_text_large_chunks(count: int = 2000) -> dict[str, Any]:
    """Flat text delivered in network-sized chunks."""
    return run_pipeline("FlatText/4KiB", WireFormat.TEXT, card_text(count), 4096)


def benchmark_event_stream(count: int = 2000) -> dict[str, Any]:
    """Event-stream body delivered in small chunks."""
    return run_pipeline("EventStream/16B", WireFormat.EVENT_STREAM, event_text(count), 16)


def benchmark_single_card_buffer(size: int = 200_000) -> dict[str, Any]:
    """One card whose answer line arrives one byte at a time."""
    body = b"CARD_START\nQ: long\nA: " + b"x" * size + b"\nCARD_END\n"
    decoder = FlatTextDecoder()
    extractor = CardTextExtractor()

    start = time.perf_counter()
    cards = 0
    for chunk in chunked(body, 1):
        for frame in decoder.feed(chunk):
            cards += sum(1 for _ in extractor.process(frame))
    elapsed = time.perf_counter() - start

    return {
        "name": "LongLine/1B",
        "chunks": len(body),
        "cards": cards,
        "elapsed_seconds": elapsed,
        "throughput_cps": cards / elapsed if cards else 0,
        "latency_us": (elapsed / len(body)) * 1_000_000,
    }


def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Pipeline Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_text_small_chunks,
        benchmark_text_large_chunks,
        benchmark_event_stream,
        benchmark_single_card_buffer,
    ]

    for bench in benchmarks:
        result = bench()
        print(f"{result['name']}:")
        print(f"  Chunks: {result['chunks']}")
        print(f"  Cards: {result['cards']}")
        print(f"  Elapsed: {result['elapsed_seconds']:.4f}s")
        print(f"  Throughput: {result['throughput_cps']:.0f} cards/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/item")
        print()


if __name__ == "__main__":
    run_benchmarks()
