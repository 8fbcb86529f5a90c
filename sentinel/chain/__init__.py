"""Chain access — contract calls, mirror node queries, event subscription."""

from sentinel.chain.contracts import ProtocolContracts
from sentinel.chain.events import ProtocolEventCallback, ProtocolEventFeed
from sentinel.chain.exceptions import (
    ChainCallError,
    ChainConnectionError,
    ChainError,
    TransactionFailedError,
)
from sentinel.chain.mirror import MirrorNodeClient
from sentinel.chain.web3_contracts import Web3ProtocolContracts

__all__ = [
    "ChainCallError",
    "ChainConnectionError",
    "ChainError",
    "MirrorNodeClient",
    "ProtocolContracts",
    "ProtocolEventCallback",
    "ProtocolEventFeed",
    "TransactionFailedError",
    "Web3ProtocolContracts",
]
