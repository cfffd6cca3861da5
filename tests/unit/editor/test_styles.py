import asyncio
import json

import pytest

from textblock.editor.styles import (
    StaticStyleResolver,
    StyleResolver,
    StyleResolverError,
    class_name_for_key,
)


@pytest.mark.parametrize(
    "key, expected",
    [
        ("utils/text/alignCenter", "utils-text-align-center"),
        ("globals/typography/lead", "globals-typography-lead"),
        ("colors/Accent_2", "colors-accent-2"),
    ],
)
def test_class_name_for_key(key: str, expected: str) -> None:
    assert class_name_for_key(key) == expected


def test_static_resolver_satisfies_protocol() -> None:
    assert isinstance(StaticStyleResolver(), StyleResolver)


class TestStaticStyleResolver:
    def test_explicit_entries_win(self) -> None:
        resolver = StaticStyleResolver({"globals/ul/dots": "list-dots"})
        assert asyncio.run(resolver.get_class_name_by_style_key("globals/ul/dots")) == "list-dots"
        assert asyncio.run(resolver.get_class_name_by_style_key("globals/ul/dashes")) == "globals-ul-dashes"

    def test_empty_keys(self) -> None:
        resolver = StaticStyleResolver()
        assert asyncio.run(resolver.get_class_name_by_style_key("")) is None
        assert resolver.get_class_name_by_color_key("") is None
        assert asyncio.run(resolver.get_class_names_for_style_map({})) is None

    def test_color_lookup(self) -> None:
        resolver = StaticStyleResolver(colors={"colors/red": "text-red"})
        assert resolver.get_class_name_by_color_key("colors/red") == "text-red"
        assert resolver.get_class_name_by_color_key("colors/blue") == "colors-blue"

    def test_style_map_with_viewports(self) -> None:
        resolver = StaticStyleResolver()
        styles = {
            "alignment": {"xs": "utils/text/alignCenter", "md": "utils/text/alignLeft"},
            "appearance": "globals/typography/lead",
        }
        result = asyncio.run(resolver.get_class_names_for_style_map(styles))
        assert result == "utils-text-align-center utils-text-align-left-md globals-typography-lead"

    def test_style_map_ignores_odd_values(self, caplog: pytest.LogCaptureFixture) -> None:
        resolver = StaticStyleResolver()
        with caplog.at_level("DEBUG", logger="textblock"):
            assert asyncio.run(resolver.get_class_names_for_style_map({"weight": 3})) is None
        assert "Ignoring style category" in caplog.text

    def test_add_and_list(self) -> None:
        resolver = StaticStyleResolver()
        resolver.add_style("a/b", "ab")
        resolver.add_color("c/d", "cd")
        assert resolver.list_styles() == ["a/b"]
        assert resolver.get_class_name_by_color_key("c/d") == "cd"


class TestExportImport:
    def test_round_trip(self) -> None:
        resolver = StaticStyleResolver({"a/b": "ab"}, {"c/d": "cd"})
        restored = StaticStyleResolver.import_styles(resolver.export_styles())
        assert restored.styles == {"a/b": "ab"}
        assert restored.colors == {"c/d": "cd"}

    def test_import_mapping(self) -> None:
        assert StaticStyleResolver.import_styles({"styles": {"x": "y"}}).styles == {"x": "y"}

    @pytest.mark.parametrize(
        "payload",
        ["{not json", json.dumps([1, 2]), json.dumps({"styles": []})],
    )
    def test_import_errors(self, payload: str) -> None:
        with pytest.raises(StyleResolverError):
            StaticStyleResolver.import_styles(payload)
