"""Relaybot — stateless Telegram message relay between users and one admin."""

__version__ = "0.1.0"
