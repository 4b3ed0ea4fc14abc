"""Upholstery Tracker - inventory, work order and financial ledger for an upholstery workshop."""

__version__ = "0.1.0"
