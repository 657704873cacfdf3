from abc import ABC, abstractmethod


class LedgerInterface(ABC):
    @abstractmethod
    async def get_by_reference():
        pass

    @abstractmethod
    async def create():
        pass

    @abstractmethod
    async def insert_if_absent():
        pass

    @abstractmethod
    async def claim_completion():
        pass

    @abstractmethod
    async def transition():
        pass

    @abstractmethod
    async def count_completed():
        pass

    @abstractmethod
    async def pending_payments():
        pass
