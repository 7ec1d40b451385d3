"""
IPCheck - multi-provider IP reputation and geolocation lookup
"""

__version__ = "1.0.0"
