"""
Interface layer package.

Command line entry points and output formatting.
"""
