"""Notification schemas."""

from pydantic import BaseModel, Field


class NotificationResult(BaseModel):
    """Outcome of one trigger evaluation, or the sum of several."""

    processed: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)

    def merge(self, other: "NotificationResult") -> "NotificationResult":
        self.processed += other.processed
        self.sent += other.sent
        self.failed += other.failed
        self.errors.extend(other.errors)
        return self


class Recipient(BaseModel):
    name: str
    email: str | None = None
    phone: str | None = None
