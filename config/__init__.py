"""Static configuration data (header alias table)."""
