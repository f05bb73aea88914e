"""Tokenizer service for unified tokenization and length estimation."""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Union

import tiktoken

# Encodings are expensive to build, share them across tokenizers
_encodings: Dict[str, tiktoken.Encoding] = {}


def _get_encoding(encoding_name: str) -> tiktoken.Encoding:
    encoding = _encodings.get(encoding_name)
    if encoding is None:
        encoding = tiktoken.get_encoding(encoding_name)
        _encodings[encoding_name] = encoding
    return encoding


class BaseTokenizer(ABC):
    """Abstract base class for tokenizers."""

    #: True when the count of a whitespace-joined string equals the sum of its pieces.
    additive: bool = False

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count tokens in the given text."""
        pass

    @abstractmethod
    def estimate_tokens(self, text: str) -> int:
        """Estimate token count (faster but less accurate)."""
        pass


class SimpleTokenizer(BaseTokenizer):
    """Simple tokenizer using regex-based word splitting.

    Words and single punctuation characters each count as one token and
    whitespace is free, so counts are additive across whitespace boundaries.
    """

    additive = True

    def __init__(self, avg_chars_per_token: float = 4.0):
        self.avg_chars_per_token = avg_chars_per_token
        self.word_pattern = re.compile(r'\w+|[^\w\s]')

    def count_tokens(self, text: str) -> int:
        """Count tokens using word-based splitting."""
        if not text:
            return 0
        return len(self.word_pattern.findall(text))

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count based on character length."""
        if not text:
            return 0
        return int(len(text) / self.avg_chars_per_token)


class TiktokenTokenizer(BaseTokenizer):
    """Tokenizer using a tiktoken BPE encoding."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self.encoding = _get_encoding(encoding_name)

    def count_tokens(self, text: str) -> int:
        """Count tokens using tiktoken encoding."""
        if not text:
            return 0
        return len(self.encoding.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count (same as count for tiktoken)."""
        return self.count_tokens(text)


class TokenizerService:
    """Unified tokenizer service supporting multiple backends."""

    def __init__(self, backend: str = "tiktoken", **kwargs):
        """
        Initialize tokenizer service.

        Args:
            backend: Tokenizer backend ('simple' or 'tiktoken')
            **kwargs: Additional arguments for specific backends
        """
        if backend == "tiktoken":
            self.tokenizer: BaseTokenizer = TiktokenTokenizer(**kwargs)
        elif backend == "simple":
            self.tokenizer = SimpleTokenizer(**kwargs)
        else:
            raise ValueError(f"Unknown tokenizer backend: {backend}")
        self.backend = backend

    @property
    def additive(self) -> bool:
        """Whether counts are additive across whitespace boundaries."""
        return self.tokenizer.additive

    def count_tokens(self, text: Union[str, List[str], Dict[str, str]]) -> int:
        """
        Count tokens in text.

        Args:
            text: String, list of strings, or dict of strings

        Returns:
            Total token count
        """
        if isinstance(text, str):
            return self.tokenizer.count_tokens(text)
        elif isinstance(text, list):
            return sum(self.tokenizer.count_tokens(item) for item in text)
        elif isinstance(text, dict):
            total = 0
            for key, value in text.items():
                total += self.tokenizer.count_tokens(str(key))
                total += self.tokenizer.count_tokens(str(value))
            return total
        else:
            return self.tokenizer.count_tokens(str(text))

    def estimate_tokens(self, text: Union[str, List[str]]) -> int:
        """Estimate tokens in text (faster but less accurate)."""
        if isinstance(text, list):
            return sum(self.tokenizer.estimate_tokens(item) for item in text)
        return self.tokenizer.estimate_tokens(str(text))

    def get_tokenizer_info(self) -> Dict[str, str]:
        """Get information about the current tokenizer."""
        info = {
            "backend": self.backend,
            "tokenizer": type(self.tokenizer).__name__,
        }
        if isinstance(self.tokenizer, TiktokenTokenizer):
            info["encoding_name"] = self.tokenizer.encoding.name
        return info
