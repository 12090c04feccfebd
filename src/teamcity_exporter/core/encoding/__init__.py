"""Output encoders for metrics and logs."""
