"""
In-memory channel ownership and member configuration with debounced persistence.
"""
