"""newsfeed: cache-aside social feed core.

Users, posts, comments, likes and a follow graph stored in a relational
system of record, fronted by a Redis cache with per-family TTL tiers, plus
a fan-out-on-read newsfeed and a per-identity token-bucket rate limiter.
"""

__version__ = "0.1.0"
