DEBUG = False

# Log every command, event and message entry written to the domain log store
SHOW_DOMAIN_LOG = False
