import json
import uuid

from base64 import encodebytes
from dataclasses import is_dataclass, asdict
from datetime import datetime, date
from enum import Enum
from json.encoder import JSONEncoder
from types import SimpleNamespace

from pyrsistent import PClass, PRecord

from .data_model import DataModel

DATE_FORMAT = '%Y-%m-%d'
BYTES_DECODER = 'utf_8'


class FiduciaJSONEncoder(JSONEncoder):
    ''' Sample usage:

        from fiducia.data import serialize_json
        serialize_json(event.serialize())
    '''

    def default(self, obj):
        if isinstance(obj, uuid.UUID):
            return str(obj)

        if isinstance(obj, (PClass, PRecord)):
            return obj.serialize()

        if isinstance(obj, SimpleNamespace):
            return obj.__dict__

        if isinstance(obj, DataModel):
            return obj.model_dump(mode='json')

        if is_dataclass(obj):
            return asdict(obj)

        if isinstance(obj, datetime):
            return obj.isoformat()

        if isinstance(obj, (set, tuple, frozenset)):
            return list(obj)

        if isinstance(obj, Enum):
            return obj.value

        if isinstance(obj, date):
            return obj.strftime(DATE_FORMAT)

        if isinstance(obj, bytes):
            return encodebytes(obj).decode(BYTES_DECODER)

        return super().default(obj)


def serialize_json(data, cls=FiduciaJSONEncoder, **kwargs) -> str:
    return json.dumps(data, cls=cls, **kwargs)
