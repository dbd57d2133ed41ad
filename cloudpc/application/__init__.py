"""
Application Layer

HTTP and WebSocket surface (``api``) plus the business services behind it.
"""
