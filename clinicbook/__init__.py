"""Clinic appointment scheduling and lifecycle service."""
