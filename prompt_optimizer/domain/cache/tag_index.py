"""
Tag Index

Reverse index from tag to the keys carrying it, kept for one tier.
"""

from typing import Dict, FrozenSet, Iterable, Set


class TagIndex:
    """
    Materialized tag -> keys mapping with the inverse key -> tags mapping.

    Every mutation updates both directions in the same call, so a key that
    has been removed can never be reported for any tag.
    """

    def __init__(self) -> None:
        self._keys_by_tag: Dict[str, Set[str]] = {}
        self._tags_by_key: Dict[str, FrozenSet[str]] = {}

    def add(self, key: str, tags: Iterable[str]) -> None:
        """Record ``key`` under ``tags``, replacing its previous memberships."""
        self.remove(key)
        tag_set = frozenset(tags)
        if not tag_set:
            return

        self._tags_by_key[key] = tag_set
        for tag in tag_set:
            self._keys_by_tag.setdefault(tag, set()).add(key)

    def remove(self, key: str) -> None:
        """Drop every membership of ``key``."""
        tag_set = self._tags_by_key.pop(key, None)
        if not tag_set:
            return

        for tag in tag_set:
            keys = self._keys_by_tag.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._keys_by_tag[tag]

    def keys_for(self, tag: str) -> Set[str]:
        """Return a copy of the keys carrying ``tag``."""
        return set(self._keys_by_tag.get(tag, ()))

    def tags_for(self, key: str) -> FrozenSet[str]:
        return self._tags_by_key.get(key, frozenset())

    def tags(self) -> Set[str]:
        return set(self._keys_by_tag)

    def clear(self) -> None:
        self._keys_by_tag.clear()
        self._tags_by_key.clear()

    def __contains__(self, tag: str) -> bool:
        return tag in self._keys_by_tag

    def __len__(self) -> int:
        """Number of distinct tags."""
        return len(self._keys_by_tag)
