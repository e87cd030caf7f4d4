"""Persistence layer for Kanakey: dictionary entries and learning records."""
