from .helper import async_command
from .entrypoint import fiducia_manager
from .config import show_config
from .demo import run_demo

__all__ = ["async_command", "fiducia_manager", "run_demo", "show_config"]
