"""Composition root, slash commands and the CLI entrypoint."""
