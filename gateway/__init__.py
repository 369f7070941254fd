"""EVM gateway: gas pricing, transaction polling and cancellation over JSON-RPC."""

__version__ = "0.1.0"
