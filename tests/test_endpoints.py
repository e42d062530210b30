"""Tests for endpoint path constants."""

from __future__ import annotations

import pytest

from kingdomapi.endpoints import ApiEndpoints, with_id


def test_with_id_fills_placeholder() -> None:
    assert with_id(ApiEndpoints.PRODUCT, 42) == "/products/42"


def test_with_id_requires_placeholder() -> None:
    with pytest.raises(ValueError):
        with_id(ApiEndpoints.PRODUCTS, "x")


def test_paths_are_absolute() -> None:
    paths = [value for name, value in vars(ApiEndpoints).items() if name.isupper()]
    assert paths
    assert all(path.startswith("/") for path in paths)
