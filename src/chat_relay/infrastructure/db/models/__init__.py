"""Import all models so metadata.create_all / migrations can discover them via Base.metadata."""
from chat_relay.infrastructure.db.models.message import MessageModel
from chat_relay.infrastructure.db.models.read_receipt import ReadReceiptModel

__all__ = [
    "MessageModel",
    "ReadReceiptModel",
]
