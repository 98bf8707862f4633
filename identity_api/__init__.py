"""
Identity API

Credential registration, password verification and JWT issuance behind a
FastAPI surface.
"""
