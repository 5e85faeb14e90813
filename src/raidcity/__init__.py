"""Raid subsystem API for the city."""
