from .tenancy import Tenant
from .auth import User, SessionToken, ApplicantAccessToken, StaffInviteToken
from .security import SecurityEvent
from .cases import Applicant, CaseDocument, DocumentAudit, CaseAssignment, CaseNote
from .grants import Grant, GrantPaymentDocument, PaymentRecord
from .messaging import Conversation, ConversationParticipant, Message
from .notifications import NotificationOutbox
from .sharing import SharedProfile

__all__ = [
    'Tenant',
    'User', 'SessionToken', 'ApplicantAccessToken', 'StaffInviteToken',
    'SecurityEvent',
    'Applicant', 'CaseDocument', 'DocumentAudit', 'CaseAssignment', 'CaseNote',
    'Grant', 'GrantPaymentDocument', 'PaymentRecord',
    'Conversation', 'ConversationParticipant', 'Message',
    'NotificationOutbox',
    'SharedProfile',
]
