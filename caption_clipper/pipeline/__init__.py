"""Asynchronous pipeline stages: extraction, progress, facade, results."""
