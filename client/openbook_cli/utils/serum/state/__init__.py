from .base import *
from .market_state import *
from .mint import *
from .slab import *
