"""
ChronoGraph - temporal knowledge-graph engine.

Event-sourced personal graphs with point-in-time snapshots and timeline playback.
"""

__version__ = "0.1.0"
