"""
Ledger Backends
In-process chain simulator and the web3 contract factory for dev nodes
"""
