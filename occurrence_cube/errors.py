from collections.abc import Iterable, Mapping

from occurrence_cube.types import Bucket, TaxonKey

MAX_REPORTED_KEYS = 10


class OverlappingTaxonKeysError(ValueError):
    """Raised when two buckets claim the same canonical taxon key.

    Merging such buckets would silently duplicate cube rows, so the pipeline
    stops instead.
    """

    def __init__(self, first: Bucket, second: Bucket, keys: Iterable[TaxonKey]):
        self.first = first
        self.second = second
        self.keys = sorted(keys)
        shown = ", ".join(str(key) for key in self.keys[:MAX_REPORTED_KEYS])
        if len(self.keys) > MAX_REPORTED_KEYS:
            shown += ", ..."
        super().__init__(
            f"{len(self.keys)} taxon keys appear in both the {first.value} and "
            f"{second.value} buckets: {shown}"
        )


def check_disjoint_keys(keys_by_bucket: Mapping[Bucket, Iterable[TaxonKey]]) -> None:
    """
    Raise `OverlappingTaxonKeysError` if any two buckets share a key.

    Args:
        keys_by_bucket: Canonical keys claimed by each bucket
    """
    seen: list[tuple[Bucket, set[TaxonKey]]] = []
    for bucket, keys in keys_by_bucket.items():
        key_set = set(keys)
        for other_bucket, other_keys in seen:
            overlap = key_set & other_keys
            if overlap:
                raise OverlappingTaxonKeysError(other_bucket, bucket, overlap)
        seen.append((bucket, key_set))
