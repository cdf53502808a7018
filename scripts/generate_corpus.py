"""
Synthetic corpus generator for sketchbench.

Writes deterministic pseudo-random English-like text whose word frequencies
follow a Zipf distribution, so the top-K and count queries have a realistic
heavy-hitter shape when no real book is at hand.
"""

from __future__ import annotations

import random
import sys
import time
from pathlib import Path

import typer

app = typer.Typer(help="Generate a synthetic Zipf-distributed text corpus.")

_SYLLABLES = ["ka", "lo", "mi", "ne", "ru", "sa", "to", "vi", "we", "zu", "an", "el", "or"]
_PUNCTUATION = [".", ",", ";", "!", "?", ":"]


def _vocabulary(size: int, rng: random.Random) -> list[str]:
    words: list[str] = []
    seen: set[str] = set()
    while len(words) < size:
        word = "".join(rng.choice(_SYLLABLES) for _ in range(rng.randint(1, 4)))
        if word not in seen:
            seen.add(word)
            words.append(word)
    return words


def _generate_corpus_text(
    words: int, vocabulary_size: int, seed: int, exponent: float = 1.1
) -> str:
    """
    Build `words` words of text over a `vocabulary_size`-word Zipf vocabulary.

    The rank-1 word is "the", so the default probe token is always present.
    """
    rng = random.Random(seed)
    vocabulary = ["the"] + _vocabulary(max(vocabulary_size - 1, 0), rng)
    weights = [1.0 / (rank**exponent) for rank in range(1, len(vocabulary) + 1)]

    pieces: list[str] = []
    sentence_length = 0
    for word in rng.choices(vocabulary, weights=weights, k=words):
        if sentence_length == 0:
            word = word.capitalize()
        pieces.append(word)
        sentence_length += 1
        if sentence_length >= rng.randint(6, 18):
            pieces[-1] += rng.choice(_PUNCTUATION)
            sentence_length = 0
            if rng.random() < 0.2:
                pieces[-1] += "\n"
    return " ".join(pieces) + "\n"


def _write_corpus(path: Path, words: int, vocabulary_size: int, seed: int) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = _generate_corpus_text(words, vocabulary_size, seed)
    path.write_text(text, encoding="utf-8")
    return len(text)


@app.command()
def main(
    words: int = typer.Option(
        200_000,
        "--words",
        "-w",
        help="Number of words to generate.",
    ),
    vocabulary_size: int = typer.Option(
        20_000,
        "--vocabulary",
        "-v",
        help="Number of distinct words.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path = typer.Option(
        Path("data/synthetic.txt"),
        "--output",
        "-o",
        help="Where to write the corpus.",
    ),
) -> None:
    """
    Generate a synthetic corpus file usable with `sketchbench run --corpus`.
    """
    start = time.perf_counter()
    typer.echo(f"Generating {words:,} words ({vocabulary_size:,} distinct) -> {output} (seed={seed})")
    written = _write_corpus(output, words=words, vocabulary_size=vocabulary_size, seed=seed)
    duration = time.perf_counter() - start
    typer.echo(f"Wrote {written:,} characters in {duration:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
