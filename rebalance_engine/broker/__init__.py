"""Broker client contract and stub implementation."""

from .client import BrokerClient, SubmissionResult
from .stub_client import StubBrokerClient, create_stub_broker

__all__ = ["BrokerClient", "StubBrokerClient", "SubmissionResult", "create_stub_broker"]
