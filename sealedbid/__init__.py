"""Sealed-bid auction server."""
