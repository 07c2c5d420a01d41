from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict


class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all models"""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
    )


class BaseResponse(BaseModel):
    """Licensing responses carry a human-readable message next to the data"""

    message: str = ""
