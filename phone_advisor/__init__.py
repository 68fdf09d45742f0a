"""Conversational phone search assistant."""
