"""
feedgate - update mirror and caching gateway for security appliances.
"""

__version__ = "0.1.0"
