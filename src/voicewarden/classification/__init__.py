"""
Classification of the external voice bot's replies.

The string matching here is a best-effort contract with a third-party bot, so
it is kept behind ``classify`` and ``parse_channel_info``.
"""
