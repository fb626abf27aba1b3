"""Monitoring dashboard for running pollers."""
