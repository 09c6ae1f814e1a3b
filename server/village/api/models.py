from pydantic import BaseModel, Field


class ControlMoveIn(BaseModel):
    x: float = Field(ge=-1.0, le=1.0)
    y: float = Field(ge=-1.0, le=1.0)


class ControlSayIn(BaseModel):
    text: str = Field(min_length=1, max_length=280)
