"""Frontends - ways to run llmp."""
