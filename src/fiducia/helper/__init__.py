from .timeutil import timestamp, as_timedelta
from .genutil import (
    camel_to_lower,
    camel_to_title,
    when,
)

from .asyncutil import KeyedLock, retry_async
from .clsutil import ImmutableNamespace
