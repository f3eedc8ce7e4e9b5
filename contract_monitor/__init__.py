"""
Contract Monitor — wallet activity tracker for a single EVM contract.

Polls a JSON-RPC node for logs emitted by a contract, resolves each log to
its transaction sender, and ranks the most active wallets. Modular layout:
listener (node client), scanner, ledger, and agent worker (monitor loop).
"""

__version__ = "0.1.0"
