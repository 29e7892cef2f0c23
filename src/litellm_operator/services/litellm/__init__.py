"""LiteLLM proxy client and per-kind capability adapters."""

from .client import LitellmClient

__all__ = ["LitellmClient"]
