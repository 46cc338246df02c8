"""Multi-tenant OAuth and bearer token relay"""

__version__ = "1.0.0"
