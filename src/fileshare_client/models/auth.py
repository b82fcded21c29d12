from datetime import datetime

from pydantic import BaseModel, ConfigDict


class LoginAttempt(BaseModel):
    count: int
    last_attempt: datetime

    model_config = ConfigDict(from_attributes=True)
