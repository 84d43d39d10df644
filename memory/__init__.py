"""Chat log, timeline, memory store and token accounting."""
