"""Cache key construction.

Every key and invalidation pattern in the application is built here, so the
route that populates an entry and the route that invalidates it cannot
disagree on part order.
"""

from dataclasses import dataclass
from enum import StrEnum

from bookshelf.services.cache_backends import WILDCARD

SEPARATOR = ":"


class CacheResource(StrEnum):
    """Resource types used as the first key segment."""

    BOOK = "book"
    BOOK_COLLECTION = "book_collection"


@dataclass(frozen=True)
class Invalidation:
    """What a successful write drops.

    ``keys`` are removed exactly, whatever characters they contain;
    ``patterns`` go through prefix matching.
    """

    keys: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()


def generate_key(resource_type: str, *parts: object) -> str:
    """``resource_type:part1:part2...``. Deterministic and order-sensitive."""
    return SEPARATOR.join([str(resource_type), *(str(part) for part in parts)])


def generate_pattern(resource_type: str, *parts: object) -> str:
    """Prefix pattern covering generate_key(resource_type, *parts) and anything longer.

    Parts must not contain the wildcard; client-supplied ids belong in exact keys.
    """
    prefix = generate_key(resource_type, *parts)
    if WILDCARD in prefix:
        raise ValueError(f"Pattern parts may not contain {WILDCARD!r}: {prefix!r}")
    return prefix + WILDCARD


def book_collection_key(user_id: object) -> str:
    return generate_key(CacheResource.BOOK_COLLECTION, user_id)


def book_collection_pattern(user_id: object) -> str:
    return generate_pattern(CacheResource.BOOK_COLLECTION, user_id)


def book_key(user_id: object, book_id: object) -> str:
    # Books are per user, so the owner is part of the key
    return generate_key(CacheResource.BOOK, user_id, book_id)


def book_write_invalidation(user_id: object, book_id: object | None = None) -> Invalidation:
    """Entries to drop after a book of user_id is added, changed or removed."""
    keys = (book_key(user_id, book_id),) if book_id is not None else ()
    return Invalidation(keys=keys, patterns=(book_collection_pattern(user_id),))
