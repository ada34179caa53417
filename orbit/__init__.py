"""Orbit CRM: an offline-first, event-sourced document store."""
