"""Balances, settlements and expense splitting for groups."""
