"""Network interface discovery."""
