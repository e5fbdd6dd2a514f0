from pydantic import BaseModel, Field
from typing import List, Optional


class ImproveDescriptionRequest(BaseModel):
    description: str
    title: Optional[str] = None


class ImproveDescriptionResponse(BaseModel):
    success: bool = True
    message: str = "Description improved successfully"
    improved_description: str


class ConversationAssistRequest(BaseModel):
    conversation_id: int
    limit: Optional[int] = Field(default=None, ge=1, le=200)


class SmartRepliesResponse(BaseModel):
    success: bool = True
    replies: List[str]


class MessageTextRequest(BaseModel):
    message: str


class ToneAnalysis(BaseModel):
    tone: str
    confidence: int
    is_problematic: bool = False
    suggestion: Optional[str] = None


class ToneResponse(BaseModel):
    success: bool = True
    analysis: ToneAnalysis


class Intent(BaseModel):
    intent: str
    confidence: int


class IntentResponse(BaseModel):
    success: bool = True
    intent: Intent


class ConversationSummary(BaseModel):
    discussion_points: List[str] = []
    decisions: List[str] = []
    action_items: List[str] = []
    deadlines: List[str] = []


class SummaryResponse(BaseModel):
    success: bool = True
    summary: ConversationSummary
    message_count: int
