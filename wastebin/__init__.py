"""
Wastebin: a self-hosted paste sharing service.

Pastes are stored in SQLite (local mode) or PostgreSQL, expire lazily on
read and can be burned after their first read.
"""
