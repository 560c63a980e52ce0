"""Cache key schema for the newsfeed core.

Key formats:
- Single entity:       {family}:{id}
- Paged collection:    {family}:{id}:{subresource}:page:{page}
- Relationship list:   {family}:{id}:{subresource}
- Boolean flag:        {family}:{id}:{flag}:{other_id}
- Invalidation prefix: {family}:{id}:{subresource}:*

Where family is one of the fixed tokens "user" or "post" and is always the
first segment, so keys from different families cannot collide. An optional
namespace is prepended as "{namespace}:" when configured.
"""

from __future__ import annotations

from typing import Literal

from newsfeed.config import settings

Family = Literal["user", "post"]
FAMILIES: frozenset[str] = frozenset({"user", "post"})

# Subresource tokens
POSTS = "posts"
NEWSFEED = "newsfeed"
COMMENTS = "comments"
LIKES = "likes"
LIKE = "like"
FOLLOWERS = "followers"
FOLLOWING = "following"


class CacheKeys:
    """Cache key generator following a consistent naming convention."""

    def __init__(self, namespace: str | None = None) -> None:
        self.namespace = settings.cache_key_prefix if namespace is None else namespace

    def _join(self, *parts: object) -> str:
        key = ":".join(str(part) for part in parts)
        return f"{self.namespace}:{key}" if self.namespace else key

    # -------------------------------------------------------------------------
    # Generic builders
    # -------------------------------------------------------------------------

    def entity(self, family: Family, entity_id: int) -> str:
        """Key for a single entity."""
        return self._join(family, entity_id)

    def page(self, family: Family, entity_id: int, subresource: str, page: int) -> str:
        """Key for one page of a per-entity paged collection."""
        return self._join(family, entity_id, subresource, "page", page)

    def relation(self, family: Family, entity_id: int, subresource: str) -> str:
        """Key for an unpaged relationship list."""
        return self._join(family, entity_id, subresource)

    def flag(self, family: Family, entity_id: int, flag: str, other_id: int) -> str:
        """Key for a boolean flag relating two entities."""
        return self._join(family, entity_id, flag, other_id)

    def invalidation_pattern(
        self, family: Family, entity_id: int, subresource: str | None = None
    ) -> str:
        """Pattern matching all keys of a subresource under an entity.

        Without a subresource the pattern covers every derived key of the
        entity (but not the entity key itself). Use with SCAN + DEL.
        """
        if subresource is None:
            return self._join(family, entity_id, "*")
        return self._join(family, entity_id, subresource, "*")

    # -------------------------------------------------------------------------
    # Named keys
    # -------------------------------------------------------------------------

    def user(self, user_id: int) -> str:
        return self.entity("user", user_id)

    def post(self, post_id: int) -> str:
        return self.entity("post", post_id)

    def user_posts(self, user_id: int, page: int) -> str:
        return self.page("user", user_id, POSTS, page)

    def newsfeed(self, user_id: int, page: int) -> str:
        return self.page("user", user_id, NEWSFEED, page)

    def post_comments(self, post_id: int, page: int) -> str:
        return self.page("post", post_id, COMMENTS, page)

    def post_likes(self, post_id: int, page: int) -> str:
        return self.page("post", post_id, LIKES, page)

    def like_exists(self, post_id: int, user_id: int) -> str:
        return self.flag("post", post_id, LIKE, user_id)

    def followers(self, user_id: int) -> str:
        return self.relation("user", user_id, FOLLOWERS)

    def following(self, user_id: int) -> str:
        return self.relation("user", user_id, FOLLOWING)

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def parse_key(self, key: str) -> dict[str, str] | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't match the expected format.
        """
        if self.namespace:
            head = f"{self.namespace}:"
            if not key.startswith(head):
                return None
            key = key[len(head) :]

        parts = key.split(":")
        if len(parts) < 2 or parts[0] not in FAMILIES or not parts[1].isdigit():
            return None

        result = {"family": parts[0], "id": parts[1]}
        rest = parts[2:]
        if not rest:
            return result
        result["subresource"] = rest[0]
        if len(rest) == 3 and rest[1] == "page":
            result["page"] = rest[2]
        elif len(rest) == 2:
            result["other_id"] = rest[1]
        elif len(rest) != 1:
            return None
        return result
