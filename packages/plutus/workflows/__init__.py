"""Workflow orchestrators for end-to-end interactive flows."""
