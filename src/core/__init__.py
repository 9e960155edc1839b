"""Core domain package for session-sync.

Core contains polling, classification, group and avatar reconciliation logic
without any network, crypto or storage-specific code, keeping the engine
portable across transports.
"""
