"""
tcup - TLS HTTP-to-UDP forwarding relay
"""

__version__ = "1.0.0"
