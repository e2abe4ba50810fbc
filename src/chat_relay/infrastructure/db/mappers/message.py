from __future__ import annotations

from chat_relay.domain.entities.message import Message, ReadReceipt
from chat_relay.infrastructure.db.models.message import MessageModel
from chat_relay.infrastructure.db.models.read_receipt import ReadReceiptModel


def receipt_to_entity(model: ReadReceiptModel) -> ReadReceipt:
    return ReadReceipt(
        reader_id=model.reader_id,
        reader_name=model.reader_name,
        read_at=model.read_at,
    )


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        sender_name=model.sender_name,
        body=model.body,
        attachment=model.attachment,
        created_at=model.created_at,
        is_private=model.is_private,
        recipient_id=model.recipient_id,
        read_by=tuple(receipt_to_entity(r) for r in model.read_receipts),
    )


def entity_to_model(entity: Message) -> MessageModel:
    # client_temp_id is never stored; receipts go through ReadReceiptWriterRepo.
    return MessageModel(
        id=entity.id,
        sender_id=entity.sender_id,
        sender_name=entity.sender_name,
        body=entity.body,
        attachment=entity.attachment,
        created_at=entity.created_at,
        is_private=entity.is_private,
        recipient_id=entity.recipient_id,
    )
