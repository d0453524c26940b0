"""
VoiceWarden - Voice Channel Moderation Relay for Discord

VoiceWarden keeps ephemeral voice channels in order by relaying templated text
commands to an external voice-channel bot and reading that bot's replies back
into local ownership state.

Core Components:

- **Module Registry**: Dependency-ordered policy modules sharing a typed event bus
- **Action Queue**: Priority-aware, rate-limited outbound command dispatcher
- **Command Router**: Remote control of the bot through prefixed or mentioned chat text
- **Reply Classification**: Heuristic reading of the external bot's replies
- **Ownership Coordination**: Creator/claimant tracking and per-owner channel config
- **Interactive Console**: Live status, queue control and menu actions

Usage:
    from voicewarden.main import main
    main()  # Starts the bot with console interface
"""
