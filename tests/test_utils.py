"""
Tests for the common utilities
"""

# Third Party
import pytest

# Local
from minecraft_operator.utils import nested_get


def test_nested_get_found():
    assert nested_get({"a": {"b": {"c": 1}}}, "a.b.c") == 1
    assert nested_get({"a": 2}, "a") == 2


def test_nested_get_missing():
    assert nested_get({"a": {}}, "a.b.c") is None
    assert nested_get({}, "a.b", dflt="x") == "x"


def test_nested_get_non_dict_intermediate():
    with pytest.raises(TypeError):
        nested_get({"a": 1}, "a.b")
