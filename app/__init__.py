"""Reel Digest service.

This package contains the FastAPI service that ingests Instagram reel URLs,
runs them through a single-worker resolve/download/transcribe/summarize
pipeline and stores one JSON result per job.
"""
