"""Redis client wrapper used by the Redis storage provider."""
