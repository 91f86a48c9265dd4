import inspect
import re

RX_CAMEL_SPLIT = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def camel_to_lower(name, sep='-'):
    ''' TransferInitiated => transfer-initiated '''
    return sep.join(part.lower() for part in RX_CAMEL_SPLIT.split(name) if part)


def camel_to_title(name):
    return ' '.join(part for part in RX_CAMEL_SPLIT.split(name) if part)


async def when(value):
    ''' Await the value if it is awaitable, return it as-is otherwise '''
    if inspect.isawaitable(value):
        return await value

    return value
