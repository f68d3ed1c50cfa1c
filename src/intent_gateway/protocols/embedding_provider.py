"""Embedding provider protocol.

Defines the interface for any component that turns text into a fixed-length
feature vector. The gateway ships a deterministic keyword/character
feature-hash provider; anything satisfying this protocol can replace it.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding generation.

    Any type that implements these members satisfies the protocol, no
    explicit inheritance needed.

    Example:
        ```python
        from intent_gateway.protocols import EmbeddingProvider

        provider: EmbeddingProvider = KeywordEmbeddingProvider()
        ```
    """

    @property
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors."""
        ...

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the embedding recipe."""
        ...

    def encode(self, text: str) -> list[float]:
        """Generate the embedding vector for a single text.

        Args:
            text: The text to encode

        Returns:
            The embedding vector as a list of floats
        """
        ...

    def encode_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to encode

        Returns:
            List of embedding vectors
        """
        ...

    def is_available(self) -> bool:
        """Check if the embedding provider is available."""
        ...
