"""
Firestore persistence for bookings.

Slot bookings live under a deterministic document id
(see ``models.booking_id_for``) so a second request for the same
business/date/time lands on the same document. ``create`` is atomic on the
server side and ``replace`` is conditional on the read it made: two racing
requests cannot both succeed.
"""

import logging
from typing import Any, Optional

from google.api_core.exceptions import AlreadyExists, FailedPrecondition, NotFound
from google.cloud.firestore import Client as FirestoreClient
from google.cloud.firestore import Query
from google.cloud.firestore_v1.base_query import FieldFilter

from .core.responses import SlotConflictError
from .models import BookingRecord, BookingStatus

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


class BookingStore:
    def __init__(self, client: FirestoreClient, collection: str = "bookings"):
        self.client = client
        self.collection_name = collection

    @property
    def collection(self):
        return self.client.collection(self.collection_name)

    def get(self, booking_id: str) -> Optional[dict[str, Any]]:
        """Return the stored booking document, or None if the slot is free."""
        snapshot = self.collection.document(booking_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def create(self, booking_id: str, record: BookingRecord) -> str:
        """
        Create the booking at its slot id.

        Raises:
            SlotConflictError: another booking already holds the document
        """
        try:
            self.collection.document(booking_id).create(record.to_document())
        except AlreadyExists:
            logger.info(f"Slot {booking_id} was taken by a concurrent request")
            raise SlotConflictError(booking_id)
        return booking_id

    def replace(self, booking_id: str, record: BookingRecord) -> str:
        """
        Overwrite a cancelled booking that held the same slot.

        The write carries a last-update-time precondition taken from the
        read, so two rebookings of one cancelled slot cannot both land.

        Raises:
            SlotConflictError: the slot was rebooked or changed meanwhile
        """
        ref = self.collection.document(booking_id)
        snapshot = ref.get()
        if not snapshot.exists:
            return self.create(booking_id, record)

        current = snapshot.to_dict() or {}
        if current.get("status") != BookingStatus.CANCELLED.value:
            raise SlotConflictError(booking_id, current)

        option = self.client.write_option(last_update_time=snapshot.update_time)
        try:
            ref.update(record.to_document(), option=option)
        except FailedPrecondition:
            logger.info(f"Cancelled slot {booking_id} was rebooked by a concurrent request")
            raise SlotConflictError(booking_id)
        except NotFound:
            return self.create(booking_id, record)
        return booking_id

    def add(self, record: BookingRecord) -> str:
        """Store a booking without a slot under an auto-generated id."""
        ref = self.collection.document()
        ref.set(record.to_document())
        return ref.id

    def list_recent(
        self,
        business_id: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[dict[str, Any]]:
        """Newest bookings first, optionally for one business."""
        query = self.collection.order_by("createdAt", direction=Query.DESCENDING)
        if business_id:
            query = query.where(filter=FieldFilter("businessId", "==", business_id))

        return [
            {"id": snapshot.id, **snapshot.to_dict()}
            for snapshot in query.limit(limit).stream()
        ]
