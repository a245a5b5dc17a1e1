"""Frontend development proxy with the FEO response interceptor"""

__version__ = "1.0.0"
