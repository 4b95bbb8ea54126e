""" Actions are how every call to discord is represented, they are
built eagerly by the entity methods but only sent once executed.
"""

from .action import *
from .auditable import *
from .deferred import *
from .pagination import *
