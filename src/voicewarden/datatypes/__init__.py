"""
Shared data structures for VoiceWarden.

Events and payloads, state records, queue items, chat messages and external
command declarations live here so that core components and modules can share
them without importing each other.
"""
