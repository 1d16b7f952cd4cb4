"""
Client-side envelope encryption key materials backed by a key-management service.
"""
