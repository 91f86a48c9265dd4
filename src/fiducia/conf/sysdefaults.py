''' Last resort values for every module config. A key that is neither set in
    the environment, an ini file, the module defaults nor here is undefined.
'''

LOG_LEVEL = "info"
LOG_OUTPUT = None
LOG_COLORED = False
LOG_DATEFMT = "%H:%M:%S"
LOG_FORMATTER = (
    "[%(asctime)-8s] "
    "%(process)3d "
    "[%(name)18.18s - %(filename)14.14s:%(lineno)-4d]%(levelname)6s "
    "%(message)s"
)

# Print the resolved config of a module at setup, e.g. "fiducia.transfer" ("#ALL" for every module)
DEBUG_MODULE_CONFIG = None
