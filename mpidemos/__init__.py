"""Distributed-systems algorithms run on an in-process message-passing cluster."""

__version__ = "0.1.0"