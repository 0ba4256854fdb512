# tests/conftest.py
"""Shared fixtures for the optaint test-suite."""

from types import SimpleNamespace

import pytest

from optaint import jsops
from optaint.mocks import MockFactory
from optaint.operators import DEFAULT_TABLE
from optaint.rules import RuleCatalog
from optaint.substrate import InMemorySubstrate, default_substrate


@pytest.fixture(scope="session")
def catalog():
    return RuleCatalog(DEFAULT_TABLE)


@pytest.fixture
def substrate():
    return InMemorySubstrate()


@pytest.fixture
def mocks(catalog, substrate):
    return MockFactory(substrate).build(catalog)


@pytest.fixture
def shared_substrate():
    """The process-wide substrate the generated code imports from."""
    sub = default_substrate()
    sub.clear()
    yield sub
    sub.clear()


@pytest.fixture
def evaluator():
    """Install a recording evaluator for ``eval``; restores the previous one."""
    seen = []

    def fake(code):
        seen.append(code)
        return f"evaluated:{code}"

    previous = jsops.set_evaluator(fake)
    yield seen
    jsops.set_evaluator(previous)


# ---------------------------------------------------------------------------
# ESTree builders
# ---------------------------------------------------------------------------

def ident(name):
    return {"type": "Identifier", "name": name}


def lit(value):
    return {"type": "Literal", "value": value, "raw": repr(value)}


def binary(op, left, right, kind="BinaryExpression"):
    return {"type": kind, "operator": op, "left": left, "right": right}


def unary(op, argument, prefix=True):
    return {"type": "UnaryExpression", "operator": op, "argument": argument, "prefix": prefix}


def update(op, argument, prefix=False):
    return {"type": "UpdateExpression", "operator": op, "argument": argument, "prefix": prefix}


def call(callee, *args):
    return {"type": "CallExpression", "callee": callee, "arguments": list(args)}


def program(*expressions):
    return {
        "type": "Program",
        "sourceType": "script",
        "body": [{"type": "ExpressionStatement", "expression": e} for e in expressions],
    }


@pytest.fixture
def estree():
    """Namespace of ESTree dictionary builders."""
    return SimpleNamespace(
        ident=ident, lit=lit, binary=binary, unary=unary,
        update=update, call=call, program=program,
    )
