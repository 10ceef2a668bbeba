"""Prompt templates and static prompt fragments for the chat service."""
