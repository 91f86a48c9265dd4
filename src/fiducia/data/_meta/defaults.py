DEBUG = False

UUID5_NAMESPACE = 'b7c1d0e4-5a37-4f4e-9c62-2f0e8a61d3a9'
BACKEND_QUERY_DEFAULT_LIMIT = 100
BACKEND_QUERY_INTERNAL_LIMIT = 10000
