"""
Support layer for shared utilities.

Provides project path resolution used by the operations layer and the CLI.
"""
