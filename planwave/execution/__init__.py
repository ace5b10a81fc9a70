"""Step result cache, wave construction and the plan executor."""
