from pydantic import BaseModel, Field, ValidationError
from typing import Any
from .errors import ConfigurationError


class RouterConfig(BaseModel):
    stream: str = Field(min_length=1)
    group: str = Field(default="mainGroup", min_length=1)
    main_consumer: str = Field(default="mainConsumer", min_length=1)
    type_key: str = Field(default="type", min_length=1)
    batch_size: int = Field(default=50, gt=0)
    routing_cache_suffix: str = "mainGroupConsumers"
    min_idle_ms: int = Field(default=0, ge=0)
    group_start_id: str = "$"

    @property
    def routing_cache_key(self) -> str:
        return self.stream + self.routing_cache_suffix

    @classmethod
    def build(cls, **settings: Any) -> "RouterConfig":
        """Validates settings, raising ConfigurationError instead of ValidationError."""
        try:
            return cls(**settings)
        except ValidationError as e:
            raise ConfigurationError(str(e))
