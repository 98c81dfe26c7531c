import pytest
import yaml

from gpt_shell.domain.exceptions import BusinessError, NotFoundError, ValidationError
from gpt_shell.domain.models import DEFAULT_API_URL, DEFAULT_MODEL
from gpt_shell.domain.presets import DEFAULT_SYSTEM_PROMPT, Agent
from gpt_shell.infrastructure.storage import AgentStore, BotStore, ConfigStore, read_yaml, write_yaml


def test_config_defaults_and_default_model(tmp_path):
    store = ConfigStore(root=tmp_path)
    cfg = store.load()
    assert cfg.models == {}
    assert cfg.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert cfg.stream is True

    assert store.ensure_default_model() is True
    assert store.ensure_default_model() is False
    entry = store.current_model()
    assert entry.api_url == DEFAULT_API_URL
    assert entry.model == DEFAULT_MODEL
    assert entry.api_key == ""


def test_first_added_model_becomes_current(tmp_path):
    store = ConfigStore(root=tmp_path)
    store.add_model("deepseek", "sk-1", "https://api.deepseek.com/v1/chat/completions", "deepseek-chat")
    store.add_model("qwen", "sk-2")
    cfg = store.load()
    assert cfg.current_model == "deepseek"
    assert cfg.models["qwen"].api_url == DEFAULT_API_URL
    assert store.current_model().model == "deepseek-chat"


def test_remove_current_model_falls_back_to_first(tmp_path):
    store = ConfigStore(root=tmp_path)
    store.add_model("a", "k")
    store.add_model("b", "k")
    store.remove_model("a")
    assert store.load().current_model == "b"
    store.remove_model("b")
    assert store.load().current_model is None
    with pytest.raises(NotFoundError):
        store.remove_model("b")


def test_use_system_and_stream(tmp_path):
    store = ConfigStore(root=tmp_path)
    store.add_model("a", "k")
    store.add_model("b", "k")
    store.set_current_model("b")
    store.set_stream(False)
    store.set_system_prompt(None)
    cfg = ConfigStore(root=tmp_path).load()
    assert cfg.current_model == "b"
    assert cfg.stream is False
    assert cfg.system_prompt is None
    with pytest.raises(NotFoundError):
        store.set_current_model("missing")


def test_model_name_required(tmp_path):
    with pytest.raises(ValidationError):
        ConfigStore(root=tmp_path).add_model(" ", "k")


def test_repr_hides_api_key(tmp_path):
    store = ConfigStore(root=tmp_path)
    store.add_model("a", "sk-secret")
    assert "sk-secret" not in repr(store.current_model())


def test_bots_and_aliases(tmp_path):
    store = BotStore(root=tmp_path)
    store.add("coder", "You write code.")
    store.add("poet", "You write poems.")
    store.set_alias("c", "coder")
    store.set_current("coder")

    assert store.get("coder").system_prompt == "You write code."
    assert [b.name for b in store.list()] == ["coder", "poet"]
    assert store.resolve_alias("c") == "coder"
    assert store.resolve_alias("x") is None
    assert store.get_current().name == "coder"

    store.remove("coder")
    assert store.aliases() == {}
    assert store.get_current() is None
    with pytest.raises(NotFoundError):
        store.get("coder")


def test_alias_validation(tmp_path):
    store = BotStore(root=tmp_path)
    store.add("coder", "You write code.")
    with pytest.raises(ValidationError):
        store.set_alias("cc", "coder")
    with pytest.raises(NotFoundError):
        store.set_alias("p", "poet")
    with pytest.raises(NotFoundError):
        store.remove_alias("z")
    with pytest.raises(NotFoundError):
        store.set_current("poet")


def test_clear_current(tmp_path):
    store = BotStore(root=tmp_path)
    store.add("coder", "You write code.")
    store.set_current("coder")
    store.clear_current()
    assert store.get_current() is None


def test_agents_round_trip(tmp_path):
    store = AgentStore(root=tmp_path)
    assert store.load_all() == []
    agent = Agent(
        name="opener",
        system_prompt="打开应用",
        description="opens apps",
        env={"chrome": "/usr/bin/chrome"},
        templates={"open_url": "{{chrome}} https://example.com"},
    )
    path = store.save(agent)
    assert path == tmp_path / "agents" / "opener.yaml"
    assert "打开应用" in path.read_text(encoding="utf-8")

    assert store.get("opener") == agent
    assert [a.name for a in store.load_all()] == ["opener"]

    store.remove("opener")
    assert not path.exists()
    with pytest.raises(NotFoundError):
        store.get("opener")
    with pytest.raises(NotFoundError):
        store.remove("opener")


def test_hand_edited_agent_file(tmp_path):
    (tmp_path / "agents").mkdir()
    (tmp_path / "agents" / "lister.yaml").write_text(
        "system_prompt: list things\nenv:\n  home: /home/me\n",
        encoding="utf-8",
    )
    agent = AgentStore(root=tmp_path).get("lister")
    assert agent.name == "lister"
    assert agent.env == {"home": "/home/me"}
    assert agent.templates == {}
    assert agent.description is None


def test_write_yaml_is_atomic(tmp_path):
    path = tmp_path / "nested" / "data.yaml"
    write_yaml(path, {"a": 1, "名字": "值"})
    assert read_yaml(path) == {"a": 1, "名字": "值"}
    assert [p.name for p in path.parent.iterdir()] == ["data.yaml"]


def test_read_yaml_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(["a", "b"]), encoding="utf-8")
    with pytest.raises(BusinessError) as ei:
        read_yaml(path)
    assert ei.value.code == "STORE_READ_ERROR"


def test_null_bot_entry_is_a_read_error(tmp_path):
    (tmp_path / "bots.yaml").write_text("bots:\n  coder:\n", encoding="utf-8")
    with pytest.raises(BusinessError) as ei:
        BotStore(root=tmp_path).aliases()
    assert ei.value.code == "STORE_READ_ERROR"
    assert "bots.coder" in ei.value.message


def test_malformed_sections_are_read_errors(tmp_path):
    (tmp_path / "config.yaml").write_text("models:\n  - a\n  - b\n", encoding="utf-8")
    (tmp_path / "bots.yaml").write_text("aliases: c\n", encoding="utf-8")
    (tmp_path / "agents").mkdir()
    (tmp_path / "agents" / "lister.yaml").write_text("env: [home]\n", encoding="utf-8")

    for load in (ConfigStore(root=tmp_path).load, BotStore(root=tmp_path).load, AgentStore(root=tmp_path).load_all):
        with pytest.raises(BusinessError) as ei:
            load()
        assert ei.value.code == "STORE_READ_ERROR"


def test_missing_file_is_empty(tmp_path):
    assert read_yaml(tmp_path / "nope.yaml") == {}
