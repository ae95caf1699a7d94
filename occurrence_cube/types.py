from enum import Enum
from typing import NamedTuple, TypeAlias

TaxonKey: TypeAlias = int


class Bucket(str, Enum):
    """One of the three disjoint classification outcomes for a taxon of interest."""

    SPECIES = "species"
    INFRASPECIFIC = "infraspecific"
    SYNONYM = "synonym"


class TaxonMetadata(NamedTuple):
    """Name, rank and status of a taxon as reported by a taxonomy service."""

    key: TaxonKey
    scientific_name: str | None
    rank: str | None
    taxonomic_status: str | None
    accepted_key: TaxonKey | None = None

    @property
    def canonical_key(self) -> TaxonKey:
        if self.accepted_key is not None:
            return self.accepted_key
        return self.key
