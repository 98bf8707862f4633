"""Identity-level exceptions.

Only conditions a flow can recover from are modelled here. Anything else
raised by a store or the hasher propagates unchanged to the web layer.
"""


class IdentityError(Exception):
    """Base class for identity errors."""


class EmailAlreadyRegisteredError(IdentityError):
    """The store's uniqueness constraint rejected a new account."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email is already registered")
