"""Utilities package for upholstery-tracker application."""
