"""Application interfaces (ports): document store and identity directory protocols.

No runtime imports from firerest.infrastructure.
"""

from firerest.application.interfaces.stores import DocumentStore, IdentityDirectory

__all__ = [
    "DocumentStore",
    "IdentityDirectory",
]
