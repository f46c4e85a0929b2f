"""Instaflix identity service.

Registration, password and Google login, stateless session tokens, and the
one-shot migration of legacy hosted-auth users into our own user table.
"""

__version__ = "0.1.0"
