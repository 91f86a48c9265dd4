import re
from collections import namedtuple

from pyrsistent import PClass, field

from fiducia.error import BadRequestError

from . import config
from .constant import QUERY_OPERATOR_SEP, OPERATOR_SEP_NEGATE, DEFAULT_OPERATOR
from .helper import nullable
from .identifier import UUID_TYPE

RX_PARAM_SPLIT = re.compile(r'(\.|!)')
QUERY_OPERATORS = ('eq', 'ne', 'gt', 'gte', 'lt', 'lte', 'in', 'notin')

OperatorStatement = namedtuple('OperatorStatement', 'field operator mode')
QueryExpression = namedtuple('QE', 'field operator mode value')


class QueryStatement(tuple):
    pass


def operator_statement(op_stmt: str, default_operator: str = DEFAULT_OPERATOR) -> OperatorStatement:
    ''' "status" => (status, eq, .)
        "expires_at.lte" => (expires_at, lte, .)
        "status!in" => (status, in, !)
    '''
    result = RX_PARAM_SPLIT.split(op_stmt)

    if len(result) == 1:
        return OperatorStatement(op_stmt, default_operator, QUERY_OPERATOR_SEP)

    if len(result) != 3:
        raise BadRequestError("Q00.001", f'Invalid query operator statement: {op_stmt}')

    field_name, mode, operator = result
    operator = operator or default_operator
    if operator not in QUERY_OPERATORS:
        raise BadRequestError("Q00.002", f'Unsupported query operator: {operator}')

    return OperatorStatement(field_name, operator, mode)


def process_query_statement(statements):
    def _process(stmt):
        if isinstance(stmt, QueryExpression):
            yield stmt
            return

        if isinstance(stmt, (list, tuple)):
            for item in stmt:
                yield from _process(item)
            return

        if not isinstance(stmt, dict):
            raise BadRequestError("Q00.003", f'Invalid query statement: {stmt}')

        for key, value in stmt.items():
            yield QueryExpression(*operator_statement(key), value)

    return QueryStatement(_process(statements))


def validate_list(sort_stmt):
    if sort_stmt is None:
        return tuple()

    if isinstance(sort_stmt, str):
        return (sort_stmt,)

    if isinstance(sort_stmt, (list, set, tuple)):
        return tuple(sort_stmt)

    raise ValueError('Invalid list value.')


def validate_query(query) -> QueryStatement:
    if not query:
        return QueryStatement()

    if isinstance(query, QueryStatement):
        return query

    return process_query_statement(query)


def match_expression(item_value, qe: QueryExpression):
    operator, expected = qe.operator, qe.value

    if operator == 'eq':
        result = item_value == expected
    elif operator == 'ne':
        result = item_value != expected
    elif operator == 'gt':
        result = item_value is not None and item_value > expected
    elif operator == 'gte':
        result = item_value is not None and item_value >= expected
    elif operator == 'lt':
        result = item_value is not None and item_value < expected
    elif operator == 'lte':
        result = item_value is not None and item_value <= expected
    elif operator == 'in':
        result = bool(expected) and item_value in expected
    elif operator == 'notin':
        result = not expected or item_value not in expected
    else:
        raise BadRequestError("Q00.002", f'Unsupported query operator: {operator}')

    return not result if qe.mode == OPERATOR_SEP_NEGATE else result


class BackendQuery(PClass):
    identifier = field(nullable(UUID_TYPE, str), initial=None)
    etag = field(nullable(str), initial=None)

    limit = field(int, initial=lambda: config.BACKEND_QUERY_DEFAULT_LIMIT)
    offset = field(int, initial=lambda: 0)
    sort = field(tuple, factory=validate_list, initial=tuple)
    where = field(QueryStatement, initial=QueryStatement, factory=validate_query)

    @classmethod
    def create(cls, query_data=None, **kwargs):
        if query_data is None:
            query_data = {}

        if isinstance(query_data, cls):
            return query_data.set(**kwargs) if kwargs else query_data

        if not isinstance(query_data, dict):
            raise ValueError('Invalid query: %s' % str(query_data))

        return cls(**(query_data | kwargs))
