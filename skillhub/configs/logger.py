from pydantic import BaseModel, Field


class LoggerConfig(BaseModel):
    Level: str = Field(default="INFO", description="Root log level for skillhub loggers")
