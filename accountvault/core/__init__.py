"""Core: configuration, paths, logging and the account store."""
