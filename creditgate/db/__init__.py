"""
Database package - ORM models and async session management.
"""
