"""Test fixtures for gopipe."""
