"""
Cloud PC Manager

Management backend for virtual cloud PCs: accounts, CRUD, simulated
lifecycle transitions, a Redis-backed cache and a terminal WebSocket.
"""

__version__ = "1.0.0"
