"""
Service marketplace backend: customer requests, provider quotes and the lifecycle between them.
"""

__version__ = "0.1.0"
