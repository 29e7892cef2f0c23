"""Builders for owned child object manifests."""
