"""MerkleDrop asset collaborators."""

from merkledrop.custody.token import InMemoryToken, Token

__all__ = ["Token", "InMemoryToken"]
