"""client/ -- Python client for the StudyShala API.

Layer rule: client/ talks to the server over HTTP only. It imports nothing
from api/, auth/ or core/.
"""

from client.api import ApiClient, Navigator, resolve_base_url
from client.storage import FileStorage, MemoryStorage, TokenStorage

__all__ = ["ApiClient", "FileStorage", "MemoryStorage", "Navigator", "TokenStorage", "resolve_base_url"]
