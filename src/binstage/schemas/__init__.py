"""JSON schemas for binstage configuration files.

- platforms.schema.json: platform table loaded with ``--platforms-yaml``
"""
