"""Dynamic field definition registry."""
