"""Core plumbing for the followdeck API: settings, logging, database, dependencies."""
