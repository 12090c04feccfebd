"""Core domain: models, ports, naming and encoders."""
