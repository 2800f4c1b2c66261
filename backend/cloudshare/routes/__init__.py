from .download import router as download
from .share_links import router as share_links
