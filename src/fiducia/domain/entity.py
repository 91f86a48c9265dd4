from enum import IntEnum

from fiducia.data import BlankModel, DataModel
from fiducia.helper import camel_to_title, camel_to_lower

from . import logger


DOMAIN_ENTITY_MARKER = "__entity_marker__"
DOMAIN_ENTITY_KEY = "__entity_key__"


class DomainEntityType(IntEnum):
    EVENT = 1
    COMMAND = 2
    MESSAGE = 4
    CONTEXT = 5


class CommandState(IntEnum):
    SUCCESS = 0
    CREATED = 1
    RUNNING = 3
    DENIED = 4
    REJECTED = 5
    FAILED = 500


class DomainEntity(object):
    __meta_schema__ = BlankModel

    class Data(DataModel):
        pass

    class Meta(BlankModel):
        pass

    def __init_subclass__(cls):
        if cls.__dict__.get('__abstract__'):
            return

        # Get the metadata of the current class, not of its parents.
        cls_meta = cls.__dict__.get('Meta')
        if cls_meta is not None:
            cls_meta = {k: v for k, v in cls_meta.__dict__.items() if not k.startswith('__')}
        else:
            cls_meta = {}

        # 1. Parent meta objects,
        # 2. default values for current class
        # 3. Custom meta defined by the class itself
        meta = dict(cls.Meta.__dict__) | {
            "key": camel_to_lower(cls.__name__),
            "name": camel_to_title(cls.__name__),
            "desc": (cls.__doc__ or '').strip() or None
        } | cls_meta

        cls.Meta = cls.__meta_schema__(**{
            k: v for k, v in meta.items() if not k.startswith('__')
        })

        if not issubclass(cls.Data, (DataModel, BlankModel)):
            logger.warning('Unsupported Entity Data Model: %s => %s', cls.__name__, cls.Data)
