"""
Data operations package.

Provides in-memory sheet storage, row filtering with slider/text range
support, and the restricted expression evaluator used by overlays.
"""
