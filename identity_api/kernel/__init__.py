"""
Kernel Layer

- Identity Core (credential hashing, token issuance and validation,
  registration and login flows)
- Data models backing the identity store

The identity flows depend only on the ports in kernel.identity.ports;
the SQLAlchemy store is one adapter for them.
"""
