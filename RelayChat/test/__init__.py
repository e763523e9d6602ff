"""
Tests for the RelayChat server.
"""
