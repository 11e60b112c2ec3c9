"""Models package."""

from .account import Account
from .credit_balance import CreditBalance
from .payment_receipt import PaymentReceipt
from .idea import Idea
from .execution import Execution
from .output import Output
from .encrypted_credential import EncryptedCredential
from .usage_event import UsageEvent
