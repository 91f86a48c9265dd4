ID_FIELD = "id"
ETAG_FIELD = "etag"
CREATED_FIELD = "created"
UPDATED_FIELD = "updated"

QUERY_OPERATOR_SEP = "."
OPERATOR_SEP_NEGATE = "!"
DEFAULT_OPERATOR = "eq"
