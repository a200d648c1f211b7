"""Ledger access layer."""

from .reader import LedgerReader
from .web3_reader import REGISTRY_ABI, Web3LedgerReader, classify_web3_error

__all__ = ["LedgerReader", "REGISTRY_ABI", "Web3LedgerReader", "classify_web3_error"]
