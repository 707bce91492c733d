"""OFT peer directory reader.

Rebuilds the ``EID -> peer`` map of a Solana OFT program by deriving the
per-chain ``Peer`` PDAs and pulling the padded EVM address out of the raw
account data.

Run the CLI with ``python -m oft_peer --program <PROGRAM_ID>``.
"""

__all__ = ["config", "errors", "models", "pdas", "extractor", "resolver"]

__version__ = "0.3.0"
