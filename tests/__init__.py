"""
Test suite for the Med-space backend.

Contains API-level and unit tests for the application's functionality.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
