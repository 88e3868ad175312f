"""Tests that every package imports and exports what it declares."""

import importlib

import pytest

PACKAGES = ["query_cache", "rest_client", "app.container", "app.services", "settings.logging"]


class TestImports:
    @pytest.mark.parametrize("name", PACKAGES)
    def test_imports(self, name):
        assert importlib.import_module(name)

    @pytest.mark.parametrize("name", ["query_cache", "rest_client", "app.services"])
    def test_exports_resolve(self, name):
        module = importlib.import_module(name)
        for exported in module.__all__:
            assert getattr(module, exported) is not None

    def test_crud_annotations_reference_builtin_list(self):
        from query_cache.crud import CrudOperations

        assert CrudOperations.bulk_update.__annotations__["return"] == "MutationResult[list[Record]]"
