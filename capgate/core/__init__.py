"""Ambient infrastructure shared by the gateway core and the HTTP server.

- ``logging_config``: stdlib logging setup with per-module levels.
- ``monitoring``: optional Pydantic Logfire integration and structured log helpers.
"""
