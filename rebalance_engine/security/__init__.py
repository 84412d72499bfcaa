"""Credential encryption."""

from .encryption import BrokerCredentials, EncryptionService

__all__ = ["BrokerCredentials", "EncryptionService"]
