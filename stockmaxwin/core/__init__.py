"""Core components: transport, decoding, indicators and the worker pipeline."""
