from pydantic import BaseModel, field_validator

class LoginIn(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def username_trim(cls, v: str):
        return (v or "").strip()

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str
    role: str
