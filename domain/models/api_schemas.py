# domain/models/api_schemas.py
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field
from domain.models.analysis import Analysis, ChatReply, NextPrompt
from domain.models.conversation import ImageAttachment, Message, Sender, TabularData, UserProfile
from domain.models.persona import Agent

class UserProfileModel(BaseModel):
    user_name: str = ""
    user_role: str = ""
    company_name: str = ""
    company_field: str = ""
    company_size: str = ""
    company_stage: str = ""
    main_product: str = ""
    target_audience: str = ""
    main_challenge: str = ""

    def to_domain(self) -> UserProfile:
        return UserProfile(**self.model_dump())

class MessageModel(BaseModel):
    id: str = Field(..., description="Client side message id")
    sender: Sender
    text: str = ""
    agent_id: Optional[str] = Field(None, description="Persona that authored an agent message")
    image_url: Optional[str] = None

    def to_domain(self) -> Message:
        return Message(
            id=self.id,
            sender=self.sender,
            text=self.text,
            agent_id=self.agent_id,
            image_url=self.image_url,
        )

class ImageAttachmentModel(BaseModel):
    data: str = Field(..., description="Base64 payload without the data-url prefix")
    mime_type: str = Field("image/png")

class TabularDataModel(BaseModel):
    labels: List[str]
    values: List[float]
    columns: List[str] = []
    title: Optional[str] = None

class PlanModel(BaseModel):
    plan: str = Field("free", description="free | starter | pro | premium")
    cycle: str = Field("monthly", description="monthly | yearly")

class ConversationRequest(BaseModel):
    message: str = Field("", max_length=8000)
    profile: UserProfileModel = Field(default_factory=UserProfileModel)
    history: List[MessageModel] = []

    def domain_history(self) -> List[Message]:
        return [message.to_domain() for message in self.history]

class ChatRequest(ConversationRequest):
    image: Optional[ImageAttachmentModel] = None
    table: Optional[TabularDataModel] = None
    user_id: Optional[str] = None
    plan: Optional[PlanModel] = None

    def domain_image(self) -> Optional[ImageAttachment]:
        if self.image is None:
            return None
        return ImageAttachment(data=self.image.data, mime_type=self.image.mime_type)

    def domain_table(self) -> Optional[TabularData]:
        if self.table is None:
            return None
        return TabularData(
            labels=tuple(self.table.labels),
            values=tuple(self.table.values),
            columns=tuple(self.table.columns),
            title=self.table.title,
        )

class SuperBossRequest(ChatRequest):
    pass

class SpeechRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4096)
    user_id: Optional[str] = None
    plan: Optional[PlanModel] = None

class AgentModel(BaseModel):
    id: str
    name: str
    specialty: str
    area: str
    capabilities: List[str]
    voice: str
    gender: str

    @classmethod
    def from_domain(cls, agent: Agent) -> "AgentModel":
        return cls(
            id=agent.id,
            name=agent.name,
            specialty=agent.specialty,
            area=agent.area.value,
            capabilities=sorted(capability.value for capability in agent.capabilities),
            voice=agent.voice,
            gender=agent.gender.value,
        )

class GreetingResponse(BaseModel):
    agent_id: str
    text: str

class NextQuestionResponse(BaseModel):
    agent_id: str
    text: str
    question: str
    stage: str
    greeting_prefix: Optional[str] = None
    terminal: bool = False

    @classmethod
    def from_domain(cls, agent_id: str, prompt: NextPrompt) -> "NextQuestionResponse":
        return cls(
            agent_id=agent_id,
            text=prompt.text,
            question=prompt.question,
            stage=prompt.stage.value,
            greeting_prefix=prompt.greeting_prefix,
            terminal=prompt.terminal,
        )

class ChartModel(BaseModel):
    type: str
    title: str
    labels: List[str]
    values: List[float]

class ChatResponse(BaseModel):
    agent_id: str
    text: str
    image_url: Optional[str] = None
    chart: Optional[ChartModel] = None
    error: bool = False

    @classmethod
    def from_domain(cls, agent_id: str, reply: ChatReply) -> "ChatResponse":
        chart = None
        if reply.chart is not None:
            chart = ChartModel(
                type=reply.chart.type,
                title=reply.chart.title,
                labels=list(reply.chart.labels),
                values=list(reply.chart.values),
            )
        return cls(agent_id=agent_id, text=reply.text, image_url=reply.image_url, chart=chart)

class SolutionModel(BaseModel):
    agent_id: str
    agent_name: str
    specialty: str
    solution: str
    fallback: bool = False

class AnalysisModel(BaseModel):
    problem: str
    solutions: List[SolutionModel]

    @classmethod
    def from_domain(cls, analysis: Analysis) -> "AnalysisModel":
        return cls(
            problem=analysis.problem,
            solutions=[
                SolutionModel(
                    agent_id=solution.agent.id,
                    agent_name=solution.agent.name,
                    specialty=solution.agent.specialty,
                    solution=solution.solution,
                    fallback=solution.fallback,
                )
                for solution in analysis.solutions
            ],
        )

class SuperBossAnalyzeResponse(BaseModel):
    text_response: Optional[str] = None
    summary: Optional[str] = None
    involved_agent_ids: Optional[List[str]] = None

class SuperBossTurnResponse(BaseModel):
    reply: str
    summary: Optional[str] = None
    involved_agent_ids: Optional[List[str]] = None
    analysis: Optional[AnalysisModel] = None

class HistoryResponse(BaseModel):
    user_id: str
    analyses: List[Dict[str, Any]]
