"""Application services: accounts, scoring and retry policy."""
