"""Responder dispatch backend."""
