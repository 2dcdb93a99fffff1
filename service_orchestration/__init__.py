"""Orchestrate services across local processes, Docker containers and remote hosts."""

__version__ = "0.1.0"