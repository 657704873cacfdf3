from abc import ABC, abstractmethod


class PartnerInterface(ABC):
    @abstractmethod
    async def get_partner():
        pass

    @abstractmethod
    async def get_partner_by_user():
        pass

    @abstractmethod
    async def credit_balance():
        pass

    @abstractmethod
    async def reserve_balance():
        pass

    @abstractmethod
    async def referrals_for_farmers():
        pass

    @abstractmethod
    async def complete_referral():
        pass
