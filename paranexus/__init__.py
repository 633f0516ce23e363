"""PARA Nexus: a local Projects / Areas / Resources / Archives organizer."""

__version__ = "0.1.0"
