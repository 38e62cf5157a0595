"""
Core system module for the skirmish combat engine.

This module contains the fundamental components shared by the engine: game
constants and reference tables, dice rolling, configuration, logging setup,
notice handling and console utilities.
"""
