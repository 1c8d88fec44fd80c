"""Canteen order ledger, confirmation engine and shared infrastructure."""
