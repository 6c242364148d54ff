"""Automation governance: provider normalization, sync and enrichment."""
