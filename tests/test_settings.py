"""Tests for configuration settings."""

import pytest
from prompt_fitter.codecs.chat import ChatMessagesCodec
from prompt_fitter.codecs.plaintext import PlainTextCodec
from prompt_fitter.config.settings import PromptFitConfig, get_default_config
from prompt_fitter.core.tree import Role, StrategyInput, create_scope, flatten, text_message


class TestPromptFitConfig:
    """Test cases for PromptFitConfig."""

    def test_default_config_is_valid(self):
        config = get_default_config()
        assert config.validate() == []
        assert config.input_budget == 8192 - 1200 - 300 - 200

    def test_from_dict_partial(self):
        config = PromptFitConfig.from_dict({'model': {'context_limit': 4096}})
        assert config.model.context_limit == 4096
        assert config.model.name == 'gpt-4'
        assert config.codec.kind == 'chat'

    def test_validate_reports_issues(self):
        config = PromptFitConfig.from_dict({
            'model': {'context_limit': 1000, 'output_target': 900, 'output_headroom': 200},
            'tokenizer': {'backend': 'bpe'},
            'codec': {'kind': 'xml'},
            'fit': {'selection_order': 'random'},
            'summary': {'role': 'narrator'},
        })
        issues = config.validate()
        assert "Output budget exceeds model context limit" in issues
        assert any("tokenizer backend" in issue for issue in issues)
        assert any("codec kind" in issue for issue in issues)
        assert any("selection order" in issue for issue in issues)
        assert any("summary role" in issue for issue in issues)

    def test_validate_rejects_plaintext_with_tiktoken(self):
        config = PromptFitConfig.from_dict({'codec': {'kind': 'plaintext'}})
        assert any("simple tokenizer" in issue for issue in config.validate())

        config.tokenizer.backend = 'simple'
        assert config.validate() == []

    def test_yaml_round_trip(self, tmp_path):
        config = PromptFitConfig.from_dict({'codec': {'kind': 'plaintext', 'join_messages_with': '\n---\n'}})
        path = tmp_path / "config" / "fit.yaml"
        config.save_yaml(str(path))
        assert PromptFitConfig.from_yaml(str(path)).to_dict() == config.to_dict()

    def test_json_round_trip(self, tmp_path):
        config = PromptFitConfig.from_dict({'fit': {'verify_accounting': True}, 'system_overhead': 50})
        path = tmp_path / "fit.json"
        config.save_json(str(path))
        loaded = PromptFitConfig.from_json(str(path))
        assert loaded.fit.verify_accounting is True
        assert loaded.system_overhead == 50

    def test_create_codec(self):
        config = PromptFitConfig.from_dict({'tokenizer': {'backend': 'simple'}, 'codec': {'kind': 'plaintext'}})
        codec = config.create_codec()
        assert isinstance(codec, PlainTextCodec)
        assert codec.tokenizer.backend == 'simple'

        config.codec.kind = 'chat'
        config.codec.reply_priming = 5
        codec = config.create_codec()
        assert isinstance(codec, ChatMessagesCodec)
        assert codec.reply_priming == 5

        config.codec.kind = 'xml'
        with pytest.raises(ValueError):
            config.create_codec()

    @pytest.mark.asyncio
    async def test_summary_strategy_uses_configured_role(self, store):
        config = PromptFitConfig.from_dict({'summary': {'role': 'user', 'header': 'Recap:'}})
        strategy = config.summary_strategy("history", store, summarize=lambda ctx: "short")
        result = await strategy(StrategyInput(target=create_scope([text_message("user", "long")]), total_tokens=10))
        [message] = flatten(result)
        assert message.role is Role.USER
        assert message.text == "Recap:\nshort"
