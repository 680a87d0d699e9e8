"""Source configuration and linked-account collaborators."""

from zenfeed.sources.protocols import CredentialLookup, SourceStore, resolve_credentials

__all__ = ["CredentialLookup", "SourceStore", "resolve_credentials"]
