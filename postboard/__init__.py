"""
Postboard - a social-posting backend.

Users register, post, vote, comment, follow each other and open hosted
checkout sessions, all through a single GraphQL endpoint.
"""

__version__ = "0.1.0"
