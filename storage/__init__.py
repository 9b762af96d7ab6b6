"""Persistence for user profiles."""
