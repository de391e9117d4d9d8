"""Rose: conversational session engine for an in-world receptionist."""

__version__ = "0.1.0"
