"""Ping-pong league tracker: seasons, ratings, standings and statistics."""

__version__ = "1.0.0"
__status__ = "production"
