from .compositor import SearchablePdfBuilder
from .settings import CreatorProperties
