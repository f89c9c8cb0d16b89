"""
Account Store Errors

Every failure raised by the account store derives from AccountStoreError,
so host code can catch the whole family with one clause.
"""


class AccountStoreError(Exception):
    """Base class for account store failures"""
    pass


class AccountNotFoundError(AccountStoreError):
    """Operation addressed an account id that does not exist"""

    def __init__(self, account_id: str, store_name: str = None):
        self.account_id = account_id
        self.store_name = store_name
        where = f" in store '{store_name}'" if store_name else ""
        super().__init__(f"Account {account_id} not found{where}")


class StoreIOError(AccountStoreError):
    """Filesystem access to an account or key file failed"""

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)


class DecodeError(AccountStoreError):
    """Stored data could not be decrypted or parsed"""
    pass


class InvalidKeyError(DecodeError):
    """Key file content is not a valid store key"""
    pass


class ConcurrencyLossError(AccountStoreError):
    """Account file changed on disk between read and write"""

    def __init__(self, path):
        self.path = path
        super().__init__(
            f"{path} was modified by another writer during the operation; "
            f"the update was not applied"
        )
