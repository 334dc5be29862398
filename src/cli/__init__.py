"""
Command line interface for stack lifecycle operations.
"""
