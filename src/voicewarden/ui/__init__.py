"""
User interface components for VoiceWarden.

This package provides the interactive prompt_toolkit console used to inspect
and control the running bot.
"""
