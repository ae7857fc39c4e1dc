"""
Exceptions raised by the nested MuSig2 engine.

None of these are retryable inside the library: a caller that hits one
must restart the affected round with fresh nonces.
"""


class NestedMuSig2Error(Exception):
    """Base exception for all nested MuSig2 errors."""
    pass


class InputValidationError(NestedMuSig2Error, ValueError):
    """Raised for empty inputs, mismatched lengths or wrong nonce counts.

    Always raised before any one-time secret has been consumed.
    """
    pass


class StateReuseError(NestedMuSig2Error, RuntimeError):
    """Raised when a round-1 state is used a second time (nonce reuse)."""
    pass


class ConsistencyError(NestedMuSig2Error):
    """Raised when a signing session is internally inconsistent."""
    pass


class NonceMismatchError(ConsistencyError):
    """Raised when sibling partial signatures carry different nonces."""
    pass


class LeafNotFoundError(ConsistencyError, LookupError):
    """Raised when a leaf id is not present in the tree."""
    pass


class NodeKindError(ConsistencyError, TypeError):
    """Raised when a traversal meets the wrong node variant."""
    pass


class TreeStateError(ConsistencyError):
    """Raised when a tree pass runs before the pass it depends on."""
    pass
