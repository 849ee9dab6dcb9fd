from typing import Iterator, Mapping, Tuple


def lazy_top_products(counts: Mapping[str, int], k: int) -> Iterator[Tuple[str, int]]:
    """Yield up to k best sellers, highest count first, ties by name."""
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))

    for name, count in ordered[: max(0, k)]:
        yield name, count
