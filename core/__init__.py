"""Core engine for opstream: operation ledger and event-stream client."""
