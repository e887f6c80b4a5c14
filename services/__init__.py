"""Donor import services."""
