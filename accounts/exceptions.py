# accounts/exceptions.py


class AccountError(Exception):
    """Base class for refused ledger operations"""


class InsufficientBalanceError(AccountError):

    def __init__(self, account, amount):
        self.account = account
        self.amount = amount
        super().__init__('Insufficient balance!')


class UnknownAccountError(AccountError):
    pass
