import secrets
from collections.abc import Mapping
from types import SimpleNamespace

from pyrsistent import PClass

from fiducia.helper.timeutil import timestamp  # noqa
from .data_model import DataModel, BlankModel


NONE_TYPE = type(None)


def nullable(*types):
    return (NONE_TYPE, *types)


def generate_etag(ctx=None, **kwargs):
    return secrets.token_urlsafe()


def serialize_mapping(data):
    if data is None:
        return {}

    if isinstance(data, Mapping):
        return data

    if isinstance(data, DataModel):
        return data.model_dump()

    if isinstance(data, (BlankModel, SimpleNamespace)):
        return data.__dict__

    if isinstance(data, PClass):
        return data.serialize()

    raise ValueError(f'Unable to convert value to mapping [{data.__class__}]')
