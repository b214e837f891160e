import json
import subsend
from subsend.tx.tx_config import TxConfig


def test_defaults():
    config = TxConfig()

    assert config.url is None
    assert config.wait_for_finalization is True
    assert config.timeout is None
    assert config.skip is False


def test_settings():
    config = TxConfig({
        "_url": "ws://node:9944",
        "_ss58_format": "42",
        "_type_registry_preset": "substrate-node-template",
        "_wait_for_finalization": False,
        "_timeout": 30,
        "_skip": True,
        "ignored": {"_url": "ws://elsewhere"}
    })

    assert config.url == "ws://node:9944"
    assert config.ss58_format == 42
    assert config.type_registry_preset == "substrate-node-template"
    assert config.wait_for_finalization is False
    assert config.timeout == 30.0
    assert config.skip is True


def test_inner_config_inherits_and_overrides():
    outer = TxConfig({"_url": "ws://node:9944", "_timeout": 30})
    inner = outer.create_inner_config({"_wait_for_finalization": False, "_timeout": 5})

    assert inner.url == "ws://node:9944"
    assert inner.wait_for_finalization is False
    assert inner.timeout == 5.0
    # the outer level is untouched
    assert outer.wait_for_finalization is True
    assert outer.timeout == 30.0


def test_lists_and_none_are_ignored():
    assert TxConfig(["remark"]).url is None
    assert TxConfig(None).create_inner_config(None).timeout is None


def test_load_config(tmp_path):
    path = tmp_path / "tx_config.json"
    path.write_text(json.dumps({"_version": 1, "_url": "ws://node:9944", "_wait_for_finalization": False}))

    config = subsend.load_config(path)

    assert config.url == "ws://node:9944"
    assert config.wait_for_finalization is False


def test_load_missing_config(tmp_path):
    config = subsend.load_config(tmp_path / "missing.json")

    assert config.url is None
    assert config.wait_for_finalization is True
