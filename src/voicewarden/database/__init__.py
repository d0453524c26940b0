"""
Database package for VoiceWarden.

Provides the single long-lived SQLite connection, schema setup and the
key-value store used to persist ownership state.
"""
