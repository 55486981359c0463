"""Shared test fixtures: assessment schema and models."""
