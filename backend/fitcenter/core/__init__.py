# Core package initialization
# Configuration, logging, error taxonomy and the access policy

from . import access_policy, exceptions, security

__all__ = [
    "access_policy",
    "exceptions",
    "security",
]
