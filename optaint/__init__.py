"""optaint — operator-level taint instrumentation for JavaScript programs.

This package rewrites ESTree syntax trees so that a fixed set of
operators and the ``eval`` sink become calls to taint-aware mock
functions, builds those mocks, and renders them as injectable source.

Submodules
----------
operators
    The Operator Spec Table: ``OperatorSpec``, ``OperatorTable``,
    ``Category`` and the ``DEFAULT_TABLE`` every other layer is built from.

nodes
    Closed set of ESTree node classes plus ``from_estree`` /
    ``to_estree`` / ``to_sexp`` conversion.

rules, rewriter
    The Rewrite Rule Catalog (``RuleCatalog``) and the post-order driver
    (``rewrite``) that applies it to a tree.

mocks, substrate, jsops
    The Mock Implementation Factory, the taint substrate protocol with a
    reference in-memory implementation, and native JavaScript operator
    semantics over Python values.

codegen
    The Code Generation Bridge: per-category templates rendered into one
    self-contained Python blob.

provenance
    Provenance label formatting and parsing.

errors, config, main
    Error codes and exception hierarchy, engine configuration, CLI.

Usage
-----
Programmatic::

    from optaint import DEFAULT_TABLE, RuleCatalog, MockFactory, render
    from optaint.substrate import default_substrate

    catalog = RuleCatalog(DEFAULT_TABLE)
    mocks = MockFactory(default_substrate()).build(catalog)
    source = render(mocks).code

Command-line::

    python -m optaint generate -o mocks.py
    python -m optaint rewrite program.json --format sexp
    python -m optaint explain '+(src,value(2))'
"""

from __future__ import annotations

from optaint.operators import DEFAULT_TABLE, Category, OperatorSpec, OperatorTable
from optaint.rules import RewriteRule, RuleCatalog
from optaint.rewriter import rewrite, rewrite_estree
from optaint.mocks import MockFactory, MockFunction, MockNamespace, is_mock_function
from optaint.codegen import GeneratedMocks, MockCodeGenerator, render

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "Category",
    "OperatorSpec",
    "OperatorTable",
    "DEFAULT_TABLE",
    "RewriteRule",
    "RuleCatalog",
    "rewrite",
    "rewrite_estree",
    "MockFactory",
    "MockFunction",
    "MockNamespace",
    "is_mock_function",
    "GeneratedMocks",
    "MockCodeGenerator",
    "render",
]
