"""Price simulation pipeline."""
