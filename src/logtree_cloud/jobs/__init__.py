"""Scheduled batch jobs and their command-line runner."""
