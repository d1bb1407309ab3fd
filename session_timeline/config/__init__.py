"""Configuration package for session-timeline."""

from __future__ import annotations

from session_timeline.config.base import TimelineSettings, get_settings, lazy_settings, settings

__all__ = ['TimelineSettings', 'get_settings', 'lazy_settings', 'settings']
