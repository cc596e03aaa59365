from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


class LeadStatus(str, Enum):
    NEW = "New"
    CONTACTED = "Contacted"
    QUALIFIED = "Qualified"
    PROPOSAL = "Proposal"
    WON = "Won"
    LOST = "Lost"
    ARCHIVED = "Archived"
    FOLLOW_UP_NEEDED = "Follow Up Needed"


class FollowUpStage(str, Enum):
    """Linear pipeline, in order."""
    INQUIRY = "Inquiry"
    FIRST_CONTACT = "First Contact"
    PROPERTY_VIEWING = "Property Viewing"
    OFFER_MADE = "Offer Made"
    CONTRACT = "Contract"
    CLOSED = "Closed"


class LeadSource(str, Enum):
    FACEBOOK = "Facebook"
    GOOGLE = "Google"
    MANUAL = "Manual"
    REFERRAL = "Referral"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class AgingStatus(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "healthy"


class MessageChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class MessageStatus(str, Enum):
    QUEUED = "Queued"
    SENT = "Sent"
    DELIVERED = "Delivered"
    FAILED = "Failed"


# ============================================================
# Leads
# ============================================================

class DataHealth(BaseModel):
    isDuplicate: bool = False
    duplicateIds: List[str] = Field(default_factory=list)
    isInvalidEmail: bool = False
    needsStandardization: bool = False


class LeadBase(BaseModel):
    name: str
    email: str = ""
    phone: str = ""
    source: LeadSource = LeadSource.MANUAL
    status: LeadStatus = LeadStatus.NEW
    stage: FollowUpStage = FollowUpStage.INQUIRY
    notes: str = ""
    propertyAddress: str = ""
    campaignSource: str = ""
    taskDueDate: Optional[str] = None
    taskCompleted: bool = False
    nextFollowUpTask: Optional[str] = None
    priorityScore: Optional[int] = Field(default=None, ge=0, le=100)
    sentiment: Sentiment = Sentiment.NEUTRAL


class LeadCreate(LeadBase):
    pass


class LeadUpdate(BaseModel):
    # Partial update; unset fields keep their stored value
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    source: Optional[LeadSource] = None
    status: Optional[LeadStatus] = None
    stage: Optional[FollowUpStage] = None
    notes: Optional[str] = None
    propertyAddress: Optional[str] = None
    campaignSource: Optional[str] = None
    taskDueDate: Optional[str] = None
    taskCompleted: Optional[bool] = None
    nextFollowUpTask: Optional[str] = None
    priorityScore: Optional[int] = Field(default=None, ge=0, le=100)
    sentiment: Optional[Sentiment] = None

    @field_validator(
        "name", "email", "phone", "source", "status", "stage", "notes",
        "propertyAddress", "campaignSource", "taskCompleted", "sentiment",
    )
    @classmethod
    def not_null(cls, value):
        # Omit a field to keep it; only the task and score fields can be cleared
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class LeadStatusUpdate(BaseModel):
    status: LeadStatus


class LeadStageUpdate(BaseModel):
    stage: FollowUpStage


class Lead(LeadBase):
    id: str
    userId: Optional[str] = None
    createdAt: str
    lastContacted: Optional[str] = None
    firstContactedAt: Optional[str] = None
    agingStatus: Optional[AgingStatus] = None
    health: Optional[DataHealth] = None
    # Verdict of the remote deliverability check at the last email write; not part of health
    emailCheckInvalid: Optional[bool] = None


class LeadHealthReport(BaseModel):
    total: int
    duplicates: int
    invalidEmails: int
    needsStandardization: int
    leads: List[Lead] = Field(default_factory=list)


# ============================================================
# Outreach
# ============================================================

class MessageLog(BaseModel):
    id: str
    leadId: Optional[str] = None
    leadName: str = ""
    channel: MessageChannel
    status: MessageStatus
    content: str
    sentAt: str
    scheduledAt: Optional[str] = None
    userId: Optional[str] = None


class SendMessageRequest(BaseModel):
    leadIds: List[str] = Field(min_length=1)
    content: str = Field(min_length=1)
    channel: MessageChannel
    scheduledAt: Optional[str] = None


class DispatchResult(BaseModel):
    leadId: str
    leadName: str = ""
    destination: str = ""
    content: str = ""
    status: Optional[MessageStatus] = None
    skipped: bool = False
    error: Optional[str] = None


class SendMessageResponse(BaseModel):
    scheduled: bool
    sent: int
    failed: int
    queued: int
    skipped: int
    results: List[DispatchResult]


# ============================================================
# Settings
# ============================================================

class IntegrationStatus(BaseModel):
    enabled: bool = False
    connected: bool = False
    statusMessage: Optional[str] = None
    lastTested: Optional[str] = None


class EmailIntegration(IntegrationStatus):
    provider: str = "sendgrid"
    apiKey: str = ""
    fromEmail: str = ""


class SmsIntegration(IntegrationStatus):
    provider: str = "twilio"
    accountSid: str = ""
    authToken: str = ""
    senderId: str = ""
    adminPhone: str = ""
    criticalAlertsEnabled: bool = False
    taskRemindersEnabled: bool = False


class WhatsAppIntegration(IntegrationStatus):
    businessId: str = ""
    accessToken: str = ""
    phoneNumberId: str = ""


class GoogleIntegration(IntegrationStatus):
    customerId: str = ""
    developerToken: str = ""
    lastSync: Optional[str] = None


class FacebookIntegration(IntegrationStatus):
    pageId: str = ""
    pageName: Optional[str] = None
    accessToken: str = ""


class Integrations(BaseModel):
    email: EmailIntegration = Field(default_factory=EmailIntegration)
    sms: SmsIntegration = Field(default_factory=SmsIntegration)
    whatsapp: WhatsAppIntegration = Field(default_factory=WhatsAppIntegration)
    google: GoogleIntegration = Field(default_factory=GoogleIntegration)
    facebook: FacebookIntegration = Field(default_factory=FacebookIntegration)


class IntegrationTestResult(BaseModel):
    connected: bool
    message: str


class Profile(BaseModel):
    id: str
    email: str = ""
    fullName: Optional[str] = None
    companyName: Optional[str] = None
    logoUrl: Optional[str] = None
    subscriptionPlan: str = "Starter"
    integrations: Integrations = Field(default_factory=Integrations)


class ProfileUpdate(BaseModel):
    fullName: Optional[str] = None
    companyName: Optional[str] = None
    logoUrl: Optional[str] = None
    subscriptionPlan: Optional[str] = None


class TeamMember(BaseModel):
    id: str
    email: str
    name: str
    role: str = "Agent"
    status: str = "Pending"
    joinedAt: str


class TeamInvite(BaseModel):
    email: str
    name: str = ""
    role: str = Field(default="Agent", pattern="^(Admin|Agent|Viewer)$")


# ============================================================
# AI assist
# ============================================================

class ComposeRequest(BaseModel):
    leadId: str
    channel: MessageChannel


class MarketingRequest(BaseModel):
    description: str = Field(min_length=1)


class FlyerCopy(BaseModel):
    headline: str = ""
    body: str = ""
    features: List[str] = Field(default_factory=list)


class MarketingAssets(BaseModel):
    image: Optional[str] = None
    ig: str = ""
    fb: str = ""
    li: str = ""
    flyer: FlyerCopy = Field(default_factory=FlyerCopy)


class VoiceNoteResult(BaseModel):
    summary: str
    nextStep: str
    sentiment: Sentiment
