from pydantic import BaseModel, ConfigDict, Field


class AuditRequestIn(BaseModel):
    email: str | None = Field(default=None, max_length=320)
    url: str | None = Field(default=None, max_length=2048)
    # Hidden form field; humans leave it empty.
    website: str | None = Field(default=None, max_length=2048)


class PerformanceResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    load_time: float = Field(ge=0)
    mobile_friendly: bool
    fallback: bool = False


class SecurityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    secure: bool
    fallback: bool = False


class MentionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    mentioned: bool
    fallback: bool = False


class StructuredDataResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    present: bool
    fallback: bool = False


class AuditReportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: int
    page_speed: int = Field(alias="pageSpeed")
    load_time: float = Field(alias="loadTime")
    mobile_friendly: bool = Field(alias="mobileFriendly")
    https: bool
    chatgpt_citation: bool = Field(alias="chatGPTCitation")
    gemini_citation: bool = Field(alias="geminiCitation")
    schema_markup: bool = Field(alias="schemaMarkup")


class AuditReport(BaseModel):
    """Scored result of every probe for one target; immutable once built."""

    model_config = ConfigDict(frozen=True)

    target_url: str
    performance: PerformanceResult
    security: SecurityResult
    chatgpt: MentionResult
    gemini: MentionResult
    structured_data: StructuredDataResult
    score: int = Field(ge=0, le=100)

    def to_response(self) -> AuditReportResponse:
        return AuditReportResponse(
            score=self.score,
            page_speed=self.performance.score,
            load_time=self.performance.load_time,
            mobile_friendly=self.performance.mobile_friendly,
            https=self.security.secure,
            chatgpt_citation=self.chatgpt.mentioned,
            gemini_citation=self.gemini.mentioned,
            schema_markup=self.structured_data.present,
        )

    @property
    def fallbacks(self) -> list[str]:
        probes = {
            "pagespeed": self.performance,
            "https": self.security,
            "chatgpt": self.chatgpt,
            "gemini": self.gemini,
            "structured_data": self.structured_data,
        }
        return [name for name, result in probes.items() if result.fallback]
