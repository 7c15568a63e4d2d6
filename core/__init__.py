"""Configuration, logging, errors and repositories shared across the app."""
