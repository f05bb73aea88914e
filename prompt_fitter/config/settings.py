"""Configuration settings for prompt fitting."""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
import yaml
import json
from pathlib import Path

from ..codecs.base import MessageCodec
from ..codecs.chat import ChatMessagesCodec
from ..codecs.plaintext import PlainTextCodec
from ..core.fit_engine import SELECTION_ORDERS
from ..core.tokenizer_service import TokenizerService
from ..core.tree import Role, Strategy
from ..memory.key_value import KVStore
from ..services.summarizer import Summarizer, create_summary_strategy

CODEC_KINDS = ("chat", "plaintext")
TOKENIZER_BACKENDS = ("tiktoken", "simple")


@dataclass
class ModelConfig:
    """Model configuration."""
    name: str = "gpt-4"
    context_limit: int = 8192
    output_target: int = 1200
    output_headroom: int = 300

    @property
    def output_budget(self) -> int:
        """Total output budget including headroom."""
        return self.output_target + self.output_headroom


@dataclass
class TokenizerConfig:
    """Tokenizer backend configuration."""
    backend: str = "tiktoken"
    encoding_name: str = "cl100k_base"
    avg_chars_per_token: float = 4.0


@dataclass
class CodecConfig:
    """Codec configuration; plaintext options are ignored by the chat codec and vice versa."""
    kind: str = "chat"
    join_messages_with: str = "\n\n"
    include_role_prefix: bool = True
    message_overhead: int = 3
    reply_priming: int = 3


@dataclass
class FitConfig:
    """Fit loop configuration."""
    selection_order: str = "depth_first"
    verify_accounting: bool = False


@dataclass
class SummaryConfig:
    """Defaults for summary scopes."""
    role: str = Role.SYSTEM.value
    header: str = "[Summary of earlier conversation]"


@dataclass
class PromptFitConfig:
    """Main configuration for prompt fitting."""
    model: ModelConfig = field(default_factory=ModelConfig)
    tokenizer: TokenizerConfig = field(default_factory=TokenizerConfig)
    codec: CodecConfig = field(default_factory=CodecConfig)
    fit: FitConfig = field(default_factory=FitConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    system_overhead: int = 200

    @property
    def input_budget(self) -> int:
        """Tokens available for the prompt once output and overhead are reserved."""
        return self.model.context_limit - self.model.output_budget - self.system_overhead

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'PromptFitConfig':
        """Create configuration from dictionary."""
        config_dict = config_dict or {}
        return cls(
            model=ModelConfig(**config_dict.get('model', {})),
            tokenizer=TokenizerConfig(**config_dict.get('tokenizer', {})),
            codec=CodecConfig(**config_dict.get('codec', {})),
            fit=FitConfig(**config_dict.get('fit', {})),
            summary=SummaryConfig(**config_dict.get('summary', {})),
            system_overhead=config_dict.get('system_overhead', 200)
        )

    @classmethod
    def from_yaml(cls, file_path: str) -> 'PromptFitConfig':
        """Load configuration from YAML file."""
        with open(file_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def from_json(cls, file_path: str) -> 'PromptFitConfig':
        """Load configuration from JSON file."""
        with open(file_path, 'r', encoding='utf-8') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'model': {
                'name': self.model.name,
                'context_limit': self.model.context_limit,
                'output_target': self.model.output_target,
                'output_headroom': self.model.output_headroom
            },
            'tokenizer': {
                'backend': self.tokenizer.backend,
                'encoding_name': self.tokenizer.encoding_name,
                'avg_chars_per_token': self.tokenizer.avg_chars_per_token
            },
            'codec': {
                'kind': self.codec.kind,
                'join_messages_with': self.codec.join_messages_with,
                'include_role_prefix': self.codec.include_role_prefix,
                'message_overhead': self.codec.message_overhead,
                'reply_priming': self.codec.reply_priming
            },
            'fit': {
                'selection_order': self.fit.selection_order,
                'verify_accounting': self.fit.verify_accounting
            },
            'summary': {
                'role': self.summary.role,
                'header': self.summary.header
            },
            'system_overhead': self.system_overhead
        }

    def save_yaml(self, file_path: str):
        """Save configuration to YAML file."""
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)

    def save_json(self, file_path: str):
        """Save configuration to JSON file."""
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    def create_tokenizer(self) -> TokenizerService:
        """Create the configured tokenizer service."""
        if self.tokenizer.backend == "tiktoken":
            return TokenizerService("tiktoken", encoding_name=self.tokenizer.encoding_name)
        return TokenizerService(self.tokenizer.backend, avg_chars_per_token=self.tokenizer.avg_chars_per_token)

    def create_codec(self) -> MessageCodec:
        """Create the configured codec with the configured tokenizer."""
        tokenizer = self.create_tokenizer()
        if self.codec.kind == "plaintext":
            return PlainTextCodec(
                tokenizer,
                join_messages_with=self.codec.join_messages_with,
                include_role_prefix=self.codec.include_role_prefix
            )
        if self.codec.kind == "chat":
            return ChatMessagesCodec(
                tokenizer,
                message_overhead=self.codec.message_overhead,
                reply_priming=self.codec.reply_priming
            )
        raise ValueError(f"Unknown codec kind: {self.codec.kind}")

    def summary_strategy(self, id: str, store: KVStore, summarize: Optional[Summarizer] = None) -> Strategy:
        """Create a summary strategy using the configured role and header."""
        return create_summary_strategy(
            id,
            store,
            summarize=summarize,
            role=Role(self.summary.role),
            header=self.summary.header
        )

    def validate(self) -> List[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List of validation issues (empty if valid)
        """
        issues = []

        # Validate model config
        if self.model.context_limit <= 0:
            issues.append("Model context limit must be positive")

        if self.model.output_budget >= self.model.context_limit:
            issues.append("Output budget exceeds model context limit")

        if self.system_overhead < 0:
            issues.append("System overhead must be non-negative")

        if self.input_budget <= 0:
            issues.append("No input budget left after output and system overhead")

        # Validate collaborators
        if self.tokenizer.backend not in TOKENIZER_BACKENDS:
            issues.append(f"Unknown tokenizer backend '{self.tokenizer.backend}'")

        if self.tokenizer.avg_chars_per_token <= 0:
            issues.append("avg_chars_per_token must be positive")

        if self.codec.kind not in CODEC_KINDS:
            issues.append(f"Unknown codec kind '{self.codec.kind}'")

        if self.codec.kind == "plaintext" and self.tokenizer.backend == "tiktoken":
            issues.append("The plaintext codec needs the simple tokenizer backend; tiktoken counts are not additive")

        if self.codec.message_overhead < 0 or self.codec.reply_priming < 0:
            issues.append("Codec overheads must be non-negative")

        if self.fit.selection_order not in SELECTION_ORDERS:
            issues.append(f"Unknown selection order '{self.fit.selection_order}'")

        if self.summary.role not in [role.value for role in Role]:
            issues.append(f"Unknown summary role '{self.summary.role}'")

        return issues


def get_default_config() -> PromptFitConfig:
    """Get default configuration."""
    return PromptFitConfig.from_dict({
        'model': {
            'name': 'gpt-4',
            'context_limit': 8192,
            'output_target': 1200,
            'output_headroom': 300
        },
        'tokenizer': {
            'backend': 'tiktoken',
            'encoding_name': 'cl100k_base'
        },
        'codec': {
            'kind': 'chat',
            'message_overhead': 3,
            'reply_priming': 3
        },
        'fit': {
            'selection_order': 'depth_first',
            'verify_accounting': False
        },
        'system_overhead': 200
    })
