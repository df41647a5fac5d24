"""Core services: configuration, logging, cancellation and hit memory."""
