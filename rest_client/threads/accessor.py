"""Forum threads table accessor."""

from rest_client.base import TableAccessor
from rest_client.threads.schemas import ThreadRow


class ThreadAccessor(TableAccessor):
    table = "threads"
    row_model = ThreadRow
