"""Permission checks for authenticated actors."""
