"""
Tests for vault change notifications: event models and the watchdog bridge.
"""
