"""Authentication: who is the caller.

Two ways to establish identity:
1. Email/password → bcrypt-verified principal
2. Google OAuth → federated assertion resolved to a principal

Both end in a stateless session token (JWT) that the request
authenticator verifies on every subsequent request.
"""
