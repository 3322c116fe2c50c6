# ScoopSocials Auth Services
from scoopauth.services.blacklist import TokenBlacklist
from scoopauth.services.security import SecurityContext, SecurityMonitor
from scoopauth.services.sms import ConsoleSmsGateway, SmsGateway, TwilioSmsGateway
from scoopauth.services.token_ledger import TokenLedger
from scoopauth.services.tokens import TokenPair, issue_tokens
from scoopauth.services.users import UserService
from scoopauth.services.verification import VerificationCodeStore

__all__ = [
    "ConsoleSmsGateway",
    "SecurityContext",
    "SecurityMonitor",
    "SmsGateway",
    "TokenBlacklist",
    "TokenLedger",
    "TokenPair",
    "TwilioSmsGateway",
    "UserService",
    "VerificationCodeStore",
    "issue_tokens",
]
