"""Pure domain values: clock, workflow tables, document lines and pricing."""
