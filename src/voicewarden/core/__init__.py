"""
Command-dispatch pipeline for VoiceWarden.

- **module_registry**: Module lifecycle, dependency ordering and the event bus
- **action_queue**: Serialized, rate-limited outbound command sending
- **command_router**: Inbound remote command parsing and authorization
- **ownership_coordinator**: Reply-driven ownership and member config updates
- **app_context**: The application object threaded through every component
- **host**: Abstract chat-platform client used by all of the above
"""
