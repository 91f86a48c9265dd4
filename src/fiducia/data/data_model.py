from types import SimpleNamespace
from pydantic import BaseModel, ConfigDict


def _create(cls, data=None, defaults=None, **kwargs):
    """
    Construct a new data model object from mutiple sources
    (dict, keyword args, other models, etc.)
    and allow setting default values.
    """

    base = {**defaults} if defaults else {}

    if isinstance(data, dict):
        base.update(data)
    elif isinstance(data, (type, SimpleNamespace)):
        base.update({k: v for k, v in data.__dict__.items() if not k.startswith('__')})
    elif isinstance(data, BaseModel):
        base.update(data.model_dump())
    elif data is not None:
        raise ValueError(f'Unable to extract data from object: {data}')

    base.update(kwargs)
    return cls(**base)


class DataModel(BaseModel):
    """
    Pydantic BaseModel with custom defaults:
    - frozen = True
    - model_dump(by_alias=True)
    - `set` method to update and create a new instance.
    - `create` method to construct a new instance from multiple sources
    """

    model_config = ConfigDict(frozen=True)

    create = classmethod(_create)

    def set(self, **kwargs):
        return self.model_validate(self.model_dump(exclude_none=False) | kwargs)

    def serialize(self, **kwargs):
        return self.model_dump(**kwargs)

    def model_dump(self, by_alias=True, exclude_none=True, **kwargs):
        return super().model_dump(by_alias=by_alias, exclude_none=exclude_none, **kwargs)


class BlankModel(SimpleNamespace):
    create = classmethod(_create)

    def set(self, **kwargs):
        return self.__class__(**(self.__dict__ | kwargs))

    def serialize(self):
        return self.__dict__
