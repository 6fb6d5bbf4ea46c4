"""Astra streaming answer client."""
