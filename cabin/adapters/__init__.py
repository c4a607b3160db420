"""Adapter package for external I/O implementations.

Purpose:
    Collect concrete implementations for domain ports (GoTrue auth,
    PostgREST profiles, connectivity probing, and local settings storage).

Dependencies:
    Individual submodules depend on ``requests``, filesystem APIs, and domain
    protocol definitions.

Call context:
    Imported by ``cabin.app.controller`` for runtime wiring and by tests for
    transport-level behavior verification.
"""
