""" A small set of entities, each one composed of capabilities
(`Identifiable`, `Mentionable`) and building actions from its methods.
"""

from .base import *
from .channel import *
from .guild import *
