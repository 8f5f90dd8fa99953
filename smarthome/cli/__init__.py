"""CLI module for smarthome."""
