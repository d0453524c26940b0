"""
Utility functions and helpers for VoiceWarden.

This package provides reusable utilities:

- **logger**: Session-scoped console and file logging
- **formatting**: Placeholder substitution for command and message templates
- **lists**: Reading newline or YAML list settings
- **channels**: Voice/text channel correlation helpers
- **notifications**: Local-only status and debug output
"""
