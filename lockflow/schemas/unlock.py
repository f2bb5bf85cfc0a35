from pydantic import BaseModel, Field

from lockflow.unlock.models import SessionSnapshot


class SubmitCodeIn(BaseModel):
    code: str = Field(..., max_length=200)


class UnlockSessionOut(SessionSnapshot):
    token: str
