"""spoofctl — route macOS web traffic through a local SpoofDPI proxy."""

__version__ = "0.1.0"
