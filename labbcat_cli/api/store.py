"""
Client classes for each LaBB-CAT permission level.

Each level adds its operations on top of the previous one, so an admin
client can do everything an edit client can, and an edit client everything a
view client can.
"""

from .admin import AdminOperations
from .client import LabbcatClient
from .edit import EditOperations
from .tasks import TaskOperations
from .view import ViewOperations


class LabbcatView(ViewOperations, TaskOperations, LabbcatClient):
    """
    Read-only querying of LaBB-CAT corpora.

    Example::

        async with LabbcatView("https://labbcat.canterbury.ac.nz/demo", "demo", "demo") as store:
            result, errors, messages, call, item_id = await store.get_corpus_ids()
    """


class LabbcatEdit(EditOperations, LabbcatView):
    """Read/write interaction with LaBB-CAT corpora."""


class LabbcatAdmin(AdminOperations, LabbcatEdit):
    """Read/write/administration interaction with LaBB-CAT corpora."""
