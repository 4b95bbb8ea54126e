""" An asyncio wrapper around discord's REST API where every call
is represented as an inert action that is only sent once you decide
how to run it (await it, queue it, submit it or block on it).
"""

__version__ = "0.3.0"

from .actions import *
from .checks import *
from .entities import *
from .permissions import *
from .rest import *
