"""Resilient extraction of patent records from unstable web sources."""
