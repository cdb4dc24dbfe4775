"""Presence reconciliation and favorites ordering engine shared by followdeck services."""
