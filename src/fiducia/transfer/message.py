from fiducia.data import UUID_TYPE, DataModel

from .domain import TransferDomain


class RefundRequested(TransferDomain.Message):
    """Escrowed funds must go back to the sender"""

    class Data(DataModel):
        transfer_id: UUID_TYPE
        source: str


@TransferDomain.message_dispatcher(RefundRequested)
async def dispatch_refund(domain, message):
    await domain.refunds.handle(message.data.transfer_id)
