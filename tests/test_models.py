from core.models import Config, Match
from core.yaml_value import YamlValue


def test_content_key_names_the_body_field():
    assert Match.create(trigger=":a", replace="x").content_key() == "replace"
    assert Match.create(trigger=":a", markdown="**x**").content_key() == "markdown"
    assert Match.create(trigger=":a", html="<b>x</b>").content_key() == "html"
    assert Match.create(trigger=":a", image_path="x.png").content_key() == "image_path"
    assert Match.create(trigger=":a", form="Hi [[name]]").content_key() == "form"
    assert Match.create(trigger=":a").content_key() == "replace"


def test_config_reset_keeps_unknown_keys():
    config = Config(
        options={"backend": "Inject", "toggle_key": "ALT"},
        unknown={"future_option": YamlValue.from_python(1)},
        key_order=["backend", "future_option", "toggle_key"],
    )
    config.reset()
    assert config.options == {}
    assert config.key_order == ["future_option"]
    assert config.get("backend") == "Auto"
    assert "future_option" in config.unknown
