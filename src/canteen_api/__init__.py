"""Flask application exposing the canteen order ledger and confirmation engine."""
