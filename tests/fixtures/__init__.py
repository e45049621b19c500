"""Shared test factories and in-memory collaborators."""
