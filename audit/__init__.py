"""
Centralized Audit Logging System

Tracks who did what, when, and on which resource.
"""
