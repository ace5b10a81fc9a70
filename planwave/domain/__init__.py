"""Domain models and ports for plan execution."""
