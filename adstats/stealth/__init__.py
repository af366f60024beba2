"""Stealth module - browser-like request headers."""

from .user_agents import UserAgentRotator

__all__ = ["UserAgentRotator"]
