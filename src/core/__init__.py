"""
Core pipeline logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
yt-dlp or any infrastructure concerns. Downloaders, the transcoder and
the storage sinks are reached through protocols, so the pipeline can be
tested with fakes.
"""
