import threading

from occurrence_cube.types import TaxonKey, TaxonMetadata


class FakeTaxonomyLookup:
    """In-memory taxonomy lookup that records every key it is asked for."""

    def __init__(
        self,
        metadata: dict[TaxonKey, TaxonMetadata],
        failing_keys: set[TaxonKey] | None = None,
    ):
        self.metadata = metadata
        self.failing_keys = failing_keys or set()
        self.calls: list[TaxonKey] = []
        self._lock = threading.Lock()

    def resolve(self, key: TaxonKey) -> TaxonMetadata | None:
        with self._lock:
            self.calls.append(key)
        if key in self.failing_keys:
            raise RuntimeError(f"lookup of {key} failed")
        return self.metadata.get(key)


def mock_metadata() -> dict[TaxonKey, TaxonMetadata]:
    return {
        1: TaxonMetadata(1, "Vespa velutina Lepeletier, 1836", "SPECIES", "ACCEPTED"),
        20: TaxonMetadata(
            20, "Vespa velutina nigrithorax du Buysson, 1905", "SUBSPECIES", "ACCEPTED"
        ),
        7: TaxonMetadata(
            7, "Fallopia japonica var. compacta", "VARIETY", "SYNONYM", accepted_key=5
        ),
        5: TaxonMetadata(
            5, "Reynoutria japonica var. compacta", "VARIETY", "ACCEPTED"
        ),
        99: TaxonMetadata(
            99, "Reynoutria japonica Houtt.", "SPECIES", "SYNONYM", accepted_key=3
        ),
    }


def mock_taxonomy_lookup() -> FakeTaxonomyLookup:
    return FakeTaxonomyLookup(mock_metadata())
