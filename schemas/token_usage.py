"""Token accounting schemas."""

from pydantic import BaseModel, Field


class TokenBreakdownItem(BaseModel):
    """Token figures for one visible message."""

    index: int = Field(..., description="Message index")
    name: str = Field(..., description="Author name")
    is_user: bool = Field(default=False)
    tokens: int = Field(..., ge=0, description="Body token count")
    has_summary: bool = Field(default=False)
    summary_tokens: int = Field(default=0, ge=0)

    @property
    def savings(self) -> int:
        """Tokens saved if the summary replaced the body."""
        return self.tokens - self.summary_tokens if self.has_summary else 0


class TokenSavings(BaseModel):
    """Aggregated original vs. effective token totals."""

    original: int = Field(default=0, description="Sum of body tokens")
    current: int = Field(default=0, description="Effective total under the current policy")
    saved: int = Field(default=0, description="original - current")
    saved_percent: int = Field(default=0, description="round(100 * saved / original)")
    summarized_count: int = Field(default=0, description="Summaries counted as replacements")
    potential_saved: int = Field(default=0, description="Savings if replacement were always on")
    potential_percent: int = Field(default=0)
    total_summaries: int = Field(default=0, description="Visible messages carrying a summary")
