import pytest

from fiducia.data.query import (
    BackendQuery,
    OperatorStatement,
    QueryExpression,
    QueryStatement,
    operator_statement,
    process_query_statement,
)
from fiducia.error import BadRequestError


def test_operator_statement_default():
    assert operator_statement('status') == OperatorStatement('status', 'eq', '.')


def test_operator_statement_explicit():
    assert operator_statement('expires_at.lte') == OperatorStatement('expires_at', 'lte', '.')
    assert operator_statement('status!in') == OperatorStatement('status', 'in', '!')


def test_operator_statement_invalid():
    with pytest.raises(BadRequestError):
        operator_statement('value.between')

    with pytest.raises(BadRequestError):
        operator_statement('a.b.c')


def test_process_query_statement_nested():
    """Dictionaries and lists of dictionaries are flattened into expressions"""
    result = process_query_statement([{'status': 'PENDING'}, {'value.gt': 10}])
    assert isinstance(result, QueryStatement)
    assert result == (
        QueryExpression('status', 'eq', '.', 'PENDING'),
        QueryExpression('value', 'gt', '.', 10),
    )


def test_process_query_statement_invalid():
    with pytest.raises(BadRequestError):
        process_query_statement(['status'])


def test_backend_query_create():
    q = BackendQuery.create({'where': {'status': 'PENDING'}}, limit=5, sort='expires_at')
    assert q.limit == 5
    assert q.sort == ('expires_at',)
    assert q.where == (QueryExpression('status', 'eq', '.', 'PENDING'),)

    assert BackendQuery.create(q) is q
