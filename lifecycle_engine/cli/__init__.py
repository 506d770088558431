"""
Command line interface for the Lifecycle Engine.
"""
