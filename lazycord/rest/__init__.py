""" This module contains the transport side of the library: routes,
request descriptors, the aiohttp client that actually talks to discord
and the error taxonomy every action settles with.
"""

from .builders import *
from .client import *
from .config import *
from .errors import *
from .request import *
from .requester import *
from .response import *
from .route import *
