"""Domain core for the newsfeed service."""
