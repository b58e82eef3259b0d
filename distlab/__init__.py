"""Simulated RPC network, versioned key/value service, lock, key/value model and MapReduce applications."""

__version__ = "0.1.0"