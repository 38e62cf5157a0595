"""
Skirmish package: combat engine for a tabletop RPG session aid.

This package contains the turn-order state machine, the encounter and reward
allocators, the narrator/player synchronization channel, the read-only catalog
collaborators and the console views.
"""

__version__ = "0.1.0"
