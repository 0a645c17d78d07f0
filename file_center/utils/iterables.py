from collections.abc import Iterable, Iterator

# Keeps IN (...) lists below the bound-parameter limit of every supported backend
DELETE_BATCH_SIZE = 500


def batched(items: Iterable[str], size: int = DELETE_BATCH_SIZE) -> Iterator[list[str]]:
    batch: list[str] = []
    for item in items:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch
