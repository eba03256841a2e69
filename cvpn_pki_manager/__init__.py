"""
Client VPN PKI manager: issues Vault PKI client certificates and keeps the
AWS Client VPN endpoint CRL in sync.
"""

__version__ = "1.0.0"
