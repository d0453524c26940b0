"""
Cancellable background tasks.

Name rotation, vote expiry, delayed message cleanup and auto-claim checks are
all scheduled here so they can be cancelled by owner or by channel.
"""
