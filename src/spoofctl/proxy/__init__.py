"""System web-proxy settings per network service."""
