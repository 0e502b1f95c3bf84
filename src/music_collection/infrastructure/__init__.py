"""
Infrastructure Layer - adapters behind the domain's ports.

- repositories: in-memory document stores and JSON snapshots
- search: tokenized free-text search
- security: passlib hashing, python-jose tokens, principal resolution
"""
