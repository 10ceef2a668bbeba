"""Construction budget chat service."""
