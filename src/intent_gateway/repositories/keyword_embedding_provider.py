"""Keyword and letter-frequency embedding provider.

This is the default embedding provider. It needs no model and no network:
a text maps to counts of a curated domain vocabulary followed by the
frequency of each lowercase letter, L2-normalised. The same text always
yields the same vector, across processes and restarts.
"""

import re

import numpy as np

# Order matters: it fixes the position of each keyword dimension.
KEYWORDS: tuple[str, ...] = (
    "image", "generate", "text", "api", "openai", "dalle", "gpt", "chat",
    "completion", "model", "ai", "machine", "learning", "language",
    "vision", "speech", "audio", "file", "upload", "download", "create",
    "edit", "delete", "search", "query", "data", "database", "storage",
    "email", "message", "notification", "payment", "stripe", "webhook",
)

ALPHABET_SIZE = 26

_PUNCTUATION = re.compile(r"[^A-Za-z0-9_\s]")


class KeywordEmbeddingProvider:
    """Feature-hash implementation of EmbeddingProvider.

    This class satisfies the EmbeddingProvider protocol through structural
    typing - no explicit inheritance needed.

    Vector layout: ``len(keywords)`` keyword counts, then 26 letter counts.
    """

    def __init__(self, keywords: tuple[str, ...] = KEYWORDS) -> None:
        """Initialize the provider.

        Args:
            keywords: Vocabulary whose exact-token occurrences are counted.
        """
        self._keywords = keywords
        self._keyword_index = {word: i for i, word in enumerate(keywords)}

    @classmethod
    def create(cls) -> "KeywordEmbeddingProvider":
        """Factory method to create a provider with the default vocabulary."""
        return cls()

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension."""
        return len(self._keywords) + ALPHABET_SIZE

    @property
    def model_name(self) -> str:
        """Get the recipe identifier."""
        return f"keyword-charfreq-{self.dimension}"

    def encode(self, text: str) -> list[float]:
        """Generate the embedding vector for a single text.

        Args:
            text: The text to encode

        Returns:
            The L2-normalised vector, or the zero vector if no feature fired
        """
        clean_text = _PUNCTUATION.sub("", text.lower())
        vector = np.zeros(self.dimension, dtype=np.float64)

        for word in clean_text.split():
            index = self._keyword_index.get(word)
            if index is not None:
                vector[index] += 1

        offset = len(self._keywords)
        for char in clean_text:
            code = ord(char) - ord("a")
            if 0 <= code < ALPHABET_SIZE:
                vector[offset + code] += 1

        magnitude = float(np.linalg.norm(vector))
        if magnitude == 0.0:
            return vector.tolist()
        return (vector / magnitude).tolist()

    def encode_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to encode

        Returns:
            List of embedding vectors
        """
        return [self.encode(text) for text in texts]

    def is_available(self) -> bool:
        """Always available; nothing to load."""
        return True
