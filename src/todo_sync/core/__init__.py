"""Shared state and ports (interfaces) used across subsystems."""
