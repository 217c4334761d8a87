"""Per-item adaptive weight table."""
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple


@dataclass
class CharacterWeight:
    """Selection weight and exposure metadata for one item."""
    weight: float
    last_seen_at: Optional[int] = None  # sequence number, never wall clock
    exposure_count: int = 0
    correct_count: int = 0
    wrong_count: int = 0


class CharacterWeightTable:
    """Holds one CharacterWeight per item key.

    Entries are created lazily and never deleted; ``clear`` is reserved for an
    explicit session reset.
    """

    def __init__(self, initial_weight: float = 1.0):
        self.initial_weight = initial_weight
        self._entries: Dict[str, CharacterWeight] = {}

    def __contains__(self, item: str) -> bool:
        return item in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, item: str) -> Optional[CharacterWeight]:
        return self._entries.get(item)

    def ensure(self, item: str) -> CharacterWeight:
        """Return the entry for ``item``, creating it with the initial weight."""
        entry = self._entries.get(item)
        if entry is None:
            entry = CharacterWeight(weight=self.initial_weight)
            self._entries[item] = entry
        return entry

    def put(self, item: str, entry: CharacterWeight) -> None:
        """Install a fully built entry (used when restoring a snapshot)."""
        self._entries[item] = entry

    def items(self) -> Iterator[Tuple[str, CharacterWeight]]:
        return iter(self._entries.items())

    def clear(self) -> None:
        self._entries.clear()
