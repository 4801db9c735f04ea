"""Proctor Service - integrity monitoring for remote interview sessions"""

__version__ = "1.0.0"
