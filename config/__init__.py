"""Configuration for the conversation engine."""
