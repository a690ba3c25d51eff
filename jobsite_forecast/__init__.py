"""Geo-temporal forecast cache and service area classification for job scheduling."""
