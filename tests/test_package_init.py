#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the package and subpackage exports.
"""

import importlib

import pytest

SUBPACKAGES = [
    "stellarpdf",
    "stellarpdf.utils",
    "stellarpdf.core",
    "stellarpdf.priors",
    "stellarpdf.data",
    "stellarpdf.analysis",
]


class TestPackageExports:
    """Every name in `__all__` is importable."""

    @pytest.mark.parametrize("name", SUBPACKAGES)
    def test_all_exports(self, name):
        module = importlib.import_module(name)
        assert isinstance(module.__all__, list)
        assert len(module.__all__) == len(set(module.__all__))
        for item in module.__all__:
            assert hasattr(module, item), f"{name}.{item} listed in __all__ but missing"

    def test_version(self):
        import stellarpdf

        assert isinstance(stellarpdf.__version__, str)
        assert stellarpdf.__version__.count(".") == 2

    def test_top_level_api(self):
        import stellarpdf
        from stellarpdf.analysis import grid_eval_stars, process_pixel

        assert stellarpdf.grid_eval_stars is grid_eval_stars
        assert stellarpdf.process_pixel is process_pixel
