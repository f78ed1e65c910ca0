# flake8: noqa
"""
Server-rendered reader for the quran.com REST API.

Modules:
    settings: Configuration loading and persistence helpers.
    client:   quran.com API client and the Chapter / Verse types it returns.
    storage:  In-memory bookmark store and the process-wide chapter cache.
    templates:HTML rendering helpers for the chapter, bookmark and error pages.
    main:     FastAPI application wiring everything together.
"""
