"""
Configuration management for VoiceWarden.

This package handles the live, YAML-backed settings store that every module
reads fresh on each operation.
"""
