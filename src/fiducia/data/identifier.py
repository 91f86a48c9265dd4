import uuid

from ._meta import config


DEFAULT_UUID5_NAMESPACE = uuid.UUID(config.UUID5_NAMESPACE)


def _gen_uuid5(seed, namespace=DEFAULT_UUID5_NAMESPACE):
    return uuid.uuid5(namespace, seed)


def identifier_factory(value):
    ''' Return an identifier for 3 cases:
        - Original value if it is already an identifier
        - Coerce the current value to a UUID
        - A fixed value derived from a non-uuid string
    '''
    if isinstance(value, UUID_TYPE):
        return value

    try:
        return UUID_TYPE(value)
    except (TypeError, ValueError, AttributeError):
        if value and isinstance(value, str):
            return UUID_GENF(value)

        return None


UUID_TYPE = uuid.UUID  # Identifier class
UUID_GENR = uuid.uuid4  # Generate a random identifier
UUID_GENF = _gen_uuid5  # Generate an identifier deterministicly from a seed
